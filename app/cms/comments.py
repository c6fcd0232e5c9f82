from psycopg.rows import dict_row

STATUSES = ("pending", "approved", "spam", "rejected")


def find_all(conn, limit: int = 20, offset: int = 0) -> list:
    """Most recent comments across the site, for the moderation screen."""
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT c.*, u.username, u.avatar, p.title AS post_title
            FROM comments c
            LEFT JOIN users u ON c.user_id = u.user_id
            LEFT JOIN posts p ON c.post_id = p.post_id
            ORDER BY c.created_at DESC
            LIMIT %s OFFSET %s
            """,
            (limit, offset),
        )
        return cur.fetchall()


def find_by_post(conn, post_id: int) -> list:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT c.*, u.username, u.avatar
            FROM comments c
            LEFT JOIN users u ON c.user_id = u.user_id
            WHERE c.post_id = %s
            ORDER BY c.created_at ASC
            """,
            (post_id,),
        )
        return cur.fetchall()


def create(conn, post_id, content, user_id=None, parent_id=None, ip_address=None, user_agent=None) -> dict:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            "INSERT INTO comments (post_id, user_id, content, parent_id, ip_address, user_agent) "
            "VALUES (%s, %s, %s, %s, %s, %s) RETURNING *",
            (post_id, user_id, content, parent_id, ip_address, user_agent),
        )
        return cur.fetchone()


def update_status(conn, comment_id: int, status: str):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            "UPDATE comments SET status = %s, updated_at = NOW() WHERE comment_id = %s RETURNING *",
            (status, comment_id),
        )
        return cur.fetchone()


def delete(conn, comment_id: int) -> bool:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM comments WHERE comment_id = %s RETURNING comment_id", (comment_id,))
        return cur.fetchone() is not None
