"""Example usage of the chanql library."""

from pathlib import Path

from chanql.repl import Session, print_result
from chanql.storage import DirectoryRowStore

# Create a data directory for storage
data_dir = Path("./example_data")
session = Session(DirectoryRowStore(data_dir))

if not session.store.database_exists("people"):
    session.execute("create db people")
session.execute("use people")

if "person" not in session.store.list_tables("people"):
    session.execute(
        "create table person (id INT PRIMARY KEY, name VARCHAR(20) NOT NULL, age INT, joined DATE)"
    )

    people = [
        (1, "Alice", 30, "2021-03-14"),
        (2, "Bob", 25, "2022-07-01"),
        (3, "Charlie", 35, "2020-11-30"),
        (4, "Diana", 28, "2023-01-09"),
        (5, "Eve", 22, "2024-05-17"),
        (6, "Frank", 45, "2019-08-02"),
        (7, "Grace", 30, "2021-12-24"),
    ]

    print("Inserting person rows...")
    for person_id, name, age, joined in people:
        session.execute(f"insert into person values ({person_id}, '{name}', {age}, '{joined}')")
        print(f"  Inserted: {name}")

print("\nAll people in database:")
print_result(session.execute("select * from person"))

print("\nPeople aged 30, or named Bob:")
print_result(session.execute("select name, age from person where age = 30 or name = 'Bob'"))

# Show files created
print(f"\nFiles created in {data_dir}:")
for f in sorted(data_dir.rglob("*")):
    if f.is_file():
        print(f"  {f.relative_to(data_dir)} ({f.stat().st_size} bytes)")

print("\n" + "=" * 60)
print("You can now query this data using the chanql REPL:")
print(f"  chanql {data_dir} -d people")
print("\nExample queries:")
print("  select * from person")
print("  select name from person where age = 30")
print("  describe person")
