from pydantic import BaseModel, Field


# --- Person ---

class PersonCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255)
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


# --- Article ---
#
# Required-field rules differ between drafts and published articles, so
# every content field is optional here and the lifecycle service decides
# what is missing (reporting all violations together).

class ArticleCreate(BaseModel):
    title: str | None = Field(None, max_length=300)
    description: str | None = Field(None, max_length=1000)
    body: str | None = None
    tag_list: list[str] | None = None


class DraftCreate(ArticleCreate):
    pass


class ArticleUpdate(BaseModel):
    """
    Partial update.  ``None`` (or an omitted key) leaves a field unchanged.
    For ``tag_list`` an empty list clears the tags while ``None`` keeps them.
    """

    title: str | None = Field(None, max_length=300)
    description: str | None = Field(None, max_length=1000)
    body: str | None = None
    tag_list: list[str] | None = None


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


# --- Listing ---

class ArticleFilters(BaseModel):
    tag: str | None = None
    author: str | None = None
    favorited: str | None = None
