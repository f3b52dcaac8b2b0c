"""
PostgreSQL file templates: core runtime, blank defaults and presets.

Templates are playground source (Python, top-level await allowed).
"""

from ...types import FileName, PresetManifest

CORE_SCHEMA = '''"""
This is the schema for the database.
Declare tables with table()/column(); every table defined here is created
before the other files run.
"""

from sqlplay.schema import column, table

users = table(
    "users",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("name", "text", not_null=True),
    column("created_at", "timestamp", not_null=True, default_now=True),
)
'''

CORE_SEED = '''"""
Seeding code runs before index.
Tip: `tools.random` generates fake data, see __internal__.
"""

from schema import users

await db.insert(users, [{"name": tools.random.full_name()} for _ in range(5)])
'''

CORE_INDEX = '''"""
Write your code here.
`db` is connected to the playground database and `tools` holds the toolkit.
"""

from schema import users

await db.insert(users, {"name": tools.random.full_name()})

for row in await db.select(users):
    print(row["id"], row["name"])
'''

BLANK_SCHEMA = '''"""
This is the schema for the database.
"""

from sqlplay.schema import column, index, table
'''

BLANK_INDEX = '''"""
Write your code here.
"""
'''

STARTER_SCHEMA = '''"""
Users and their posts.
"""

from sqlplay.schema import column, index, table

users = table(
    "users",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("name", "text", not_null=True),
    column("created_at", "timestamp", not_null=True, default_now=True),
)

posts = table(
    "posts",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("content", "text", not_null=True),
    column("author_id", "integer", not_null=True, references=users.c.id),
    column("created_at", "timestamp", not_null=True, default_now=True),
    indexes=[index("posts_author_id_idx", "author_id")],
)
'''

STARTER_SEED = '''"""
Seeding code runs before index.
"""

from schema import posts, users

for _ in range(5):
    [user] = await db.insert(users, {"name": tools.random.full_name()}, returning=["id"])
    await db.insert(
        posts,
        [{"author_id": user["id"], "content": tools.random.lorem(8)} for _ in range(2)],
    )
'''

STARTER_INDEX = '''"""
Write your code here.
"""

rows = await db.execute(
    """
    SELECT u.name, COUNT(p.id) AS post_count
    FROM users u
    LEFT JOIN posts p ON p.author_id = u.id
    GROUP BY u.name
    ORDER BY u.name
    """
)

for row in rows:
    print(row["name"], row["post_count"])
'''

RLS_SCHEMA = '''"""
Users own posts; utils shows how to read them as a given user.
"""

from sqlplay.schema import column, table

users = table(
    "users",
    column("id", "uuid", primary_key=True),
    column("name", "text", not_null=True),
    column("created_at", "timestamp", not_null=True, default_now=True),
)

posts = table(
    "posts",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("owner_id", "uuid", not_null=True, references=users.c.id),
    column("content", "text", not_null=True),
)
'''

RLS_UTILS = '''"""
Identity helpers.

as_user() runs a block inside one transaction with request.jwt.claim.sub and
request.jwt.claim.role set, the way a row-level security policy sees them.
SQL reads them with request_setting(name).
"""

from sqlplay.access import ADMIN_ROLE, Identity, with_identity

AUTHENTICATED = "authenticated"

VISIBLE_POSTS = """
SELECT p.id, p.content
FROM posts p
WHERE request_setting('request.jwt.claim.role') = 'admin'
   OR CAST(p.owner_id AS TEXT) = request_setting('request.jwt.claim.sub')
ORDER BY p.id
"""


def as_user(user_id, role=AUTHENTICATED):
    return with_identity(Identity(subject=str(user_id), role=role), db.session)


def as_admin():
    return with_identity(Identity(subject=None, role=ADMIN_ROLE), db.session)


async def visible_posts(db):
    return await db.execute(VISIBLE_POSTS)
'''

RLS_SEED = '''"""
Seeding code runs before index.
"""

from schema import posts, users

for _ in range(3):
    [user] = await db.insert(
        users,
        {"id": tools.random.uuid(), "name": tools.random.full_name()},
        returning=["id"],
    )
    await db.insert(
        posts,
        [{"owner_id": user["id"], "content": tools.random.lorem()} for _ in range(2)],
    )
'''

RLS_INDEX = '''"""
Compare what one user sees with what the admin role sees.
"""

from utils import as_admin, as_user, visible_posts

owner = await db.fetch_one("SELECT id, name FROM users ORDER BY name LIMIT 1")

mine = await as_user(owner["id"])(visible_posts)
everything = await as_admin()(visible_posts)

print(f"{owner['name']} sees {len(mine)} posts, admin sees {len(everything)}")
'''

CORE_FILES = {
    FileName.SCHEMA: CORE_SCHEMA,
    FileName.SEED: CORE_SEED,
    FileName.INDEX: CORE_INDEX,
}

BLANK_FILES = {
    FileName.SCHEMA: BLANK_SCHEMA,
    FileName.INDEX: BLANK_INDEX,
}

PRESETS = (
    (
        PresetManifest(
            id="starter-01",
            name="Starter",
            description="Users and posts with a one-to-many relation",
        ),
        {
            FileName.SCHEMA: STARTER_SCHEMA,
            FileName.SEED: STARTER_SEED,
            FileName.INDEX: STARTER_INDEX,
        },
    ),
    (
        PresetManifest(
            id="rls",
            name="Row-level security",
            description="Query the same rows as different users through identity claims",
        ),
        {
            FileName.SCHEMA: RLS_SCHEMA,
            FileName.UTILS: RLS_UTILS,
            FileName.SEED: RLS_SEED,
            FileName.INDEX: RLS_INDEX,
        },
    ),
)
