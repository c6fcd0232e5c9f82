"""Post queries. Every function takes an open connection from ``db.pg()``.

``create`` and ``update`` issue several statements; callers run them inside
``conn.transaction()`` so a failure part way leaves no committed post.
"""

from psycopg import errors as pg_errors
from psycopg.rows import dict_row

STATUSES = ("draft", "published", "archived")


class SlugTaken(Exception):
    def __init__(self, slug):
        super().__init__(f"slug already in use: {slug}")
        self.slug = slug


class UnknownTag(Exception):
    def __init__(self, tag_id):
        super().__init__(f"no such tag: {tag_id}")
        self.tag_id = tag_id


_POST_FIELDS = (
    "title",
    "slug",
    "content",
    "excerpt",
    "category_id",
    "status",
    "featured_image",
    "is_featured",
    "allow_comments",
    "reading_time",
    "published_at",
    "meta_title",
    "meta_description",
    "meta_keywords",
)

_DETAIL_SQL = """
    SELECT p.*, u.username AS author_name, u.bio AS author_bio, c.name AS category_name,
           COALESCE(json_agg(json_build_object('tag_id', t.tag_id, 'name', t.name))
                    FILTER (WHERE t.tag_id IS NOT NULL), '[]') AS tags
    FROM posts p
    LEFT JOIN users u ON p.author_id = u.user_id
    LEFT JOIN categories c ON p.category_id = c.category_id
    LEFT JOIN post_tags pt ON p.post_id = pt.post_id
    LEFT JOIN tags t ON pt.tag_id = t.tag_id
    WHERE {where}
    GROUP BY p.post_id, u.username, u.bio, c.name
"""


def _values(data: dict) -> list:
    return [
        data.get("title"),
        data.get("slug"),
        data.get("content"),
        data.get("excerpt") or None,
        data.get("category_id") or None,
        data.get("status") or "draft",
        data.get("featured_image") or None,
        bool(data.get("is_featured")),
        True if data.get("allow_comments") is None else bool(data["allow_comments"]),
        data.get("reading_time") or 0,
        data.get("published_at") or None,
        data.get("meta_title") or None,
        data.get("meta_description") or None,
        data.get("meta_keywords") or None,
    ]



def find_all(conn, status: str = "all", limit: int = 100, offset: int = 0) -> list:
    """List posts for the blog index / admin table. ``status='all'`` disables the filter."""
    sql = """
        SELECT p.post_id, p.title, p.slug, p.status, p.view_count, p.created_at,
               p.published_at, p.content, p.excerpt, p.featured_image,
               u.username AS author_name, c.name AS category_name
        FROM posts p
        LEFT JOIN users u ON p.author_id = u.user_id
        LEFT JOIN categories c ON p.category_id = c.category_id
    """
    params = []
    if status and status != "all":
        sql += " WHERE p.status = %s"
        params.append(status)
    sql += " ORDER BY p.created_at DESC LIMIT %s OFFSET %s"
    params.extend([limit, offset])
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, tuple(params))
        return cur.fetchall()


def find_by_slug(conn, slug: str):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(_DETAIL_SQL.format(where="p.slug = %s"), (slug,))
        return cur.fetchone()


def find_by_id(conn, post_id: int):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(_DETAIL_SQL.format(where="p.post_id = %s"), (post_id,))
        return cur.fetchone()


def _sync_tags(cur, post_id: int, tags) -> None:
    # repeated ids collapse to one link
    for tag_id in dict.fromkeys(tags):
        try:
            cur.execute(
                "INSERT INTO post_tags (post_id, tag_id) VALUES (%s, %s)", (post_id, tag_id)
            )
        except pg_errors.ForeignKeyViolation:
            raise UnknownTag(tag_id)


def create(conn, data: dict, author_id: int) -> dict:
    cols = ", ".join(("author_id",) + _POST_FIELDS)
    marks = ", ".join(["%s"] * (len(_POST_FIELDS) + 1))
    with conn.cursor(row_factory=dict_row) as cur:
        try:
            cur.execute(
                f"INSERT INTO posts ({cols}) VALUES ({marks}) RETURNING *",
                tuple([author_id] + _values(data)),
            )
        except pg_errors.UniqueViolation:
            raise SlugTaken(data.get("slug"))
        post = cur.fetchone()
        tags = data.get("tags")
        if tags:
            _sync_tags(cur, post["post_id"], tags)
    return post


def update(conn, post_id: int, data: dict):
    """Overwrite a post and, when ``tags`` is given, replace its tag links. None if missing."""
    sets = ", ".join(f"{f} = %s" for f in _POST_FIELDS)
    values = _values(data)
    # status is required on update, unlike create
    values[_POST_FIELDS.index("status")] = data.get("status")
    with conn.cursor(row_factory=dict_row) as cur:
        try:
            cur.execute(
                f"UPDATE posts SET {sets}, updated_at = CURRENT_TIMESTAMP WHERE post_id = %s RETURNING *",
                tuple(values + [post_id]),
            )
        except pg_errors.UniqueViolation:
            raise SlugTaken(data.get("slug"))
        post = cur.fetchone()
        if post is None:
            return None
        tags = data.get("tags")
        if isinstance(tags, list):
            cur.execute("DELETE FROM post_tags WHERE post_id = %s", (post_id,))
            _sync_tags(cur, post_id, tags)
    return post


def delete(conn, post_id: int) -> bool:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM posts WHERE post_id = %s RETURNING post_id", (post_id,))
        return cur.fetchone() is not None


def increment_views(conn, post_id: int) -> None:
    with conn.cursor() as cur:
        cur.execute("UPDATE posts SET view_count = view_count + 1 WHERE post_id = %s", (post_id,))


def increment_likes(conn, post_id: int) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "UPDATE posts SET like_count = COALESCE(like_count, 0) + 1 WHERE post_id = %s",
            (post_id,),
        )


def log_activity(conn, user_id, action, entity_type, entity_id, description, ip_address=None, user_agent=None):
    with conn.cursor() as cur:
        cur.execute(
            "INSERT INTO activity_log (user_id, action, entity_type, entity_id, description, ip_address, user_agent) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s)",
            (user_id, action, entity_type, entity_id, description, ip_address, user_agent),
        )
