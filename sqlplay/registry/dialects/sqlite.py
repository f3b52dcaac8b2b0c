"""
SQLite file templates: core runtime, blank defaults and presets.
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

for name in tools.random.array(5, tools.random.full_name):
    [user] = await db.insert(users, {"name": name}, returning=["id"])
    await db.insert(
        posts,
        [{"author_id": user["id"], "content": tools.random.lorem(8)} for _ in range(2)],
    )
'''

CORE_FILES = {
    FileName.SCHEMA: CORE_SCHEMA,
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
        },
    ),
)
