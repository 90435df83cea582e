"""
帖子领域实体
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from domain.common.exceptions import DomainValidationException


TITLE_MAX_LENGTH = 255


@dataclass
class Post:
    id: Optional[int]
    title: str
    content: str
    author_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author_name: Optional[str] = None

    def __post_init__(self):
        self.validate_title()

    def validate_title(self) -> None:
        title = (self.title or "").strip()
        if not title:
            raise DomainValidationException("Title must not be empty", field="title")
        if len(title) > TITLE_MAX_LENGTH:
            raise DomainValidationException(
                f"Title must be at most {TITLE_MAX_LENGTH} characters", field="title"
            )
        self.title = title

    def is_owned_by(self, user_id: int) -> bool:
        return self.author_id == user_id

    def update(self, title: Optional[str] = None, content: Optional[str] = None) -> None:
        if title is not None:
            self.title = title
            self.validate_title()
        if content is not None:
            self.content = content
        self.updated_at = datetime.now(timezone.utc)
