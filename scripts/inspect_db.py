import sys, sqlite3, os

USER_COLUMNS = "id, name, username, email, profile_photo, created_at"


def inspect(path, limit=20):
    if not os.path.exists(path):
        print(f"File not found: {path}")
        return
    con = sqlite3.connect(path)
    con.row_factory = sqlite3.Row
    cur = con.cursor()

    cur.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='users'")
    if not cur.fetchone():
        print("No users table in", path)
        con.close()
        return

    cur.execute("SELECT COUNT(*) FROM users")
    print("Users:", cur.fetchone()[0])
    cur.execute("SELECT COUNT(*) FROM users WHERE profile_photo <> '/uploads/default.jpg'")
    print("With uploaded photo:", cur.fetchone()[0])

    # never print password hashes
    cur.execute(f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at LIMIT ?", (limit,))
    rows = cur.fetchall()
    for r in rows:
        print(dict(r))
    if not rows:
        print("(no rows)")
    con.close()


if __name__ == '__main__':
    if len(sys.argv) < 2:
        print("Usage: python3 inspect_db.py /path/to/profile_app.db [limit]")
    else:
        inspect(sys.argv[1], int(sys.argv[2]) if len(sys.argv) > 2 else 20)
