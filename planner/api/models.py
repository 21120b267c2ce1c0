"""Data models mirrored from the remote API, plus the form payloads sent to it."""

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import ValidationError

URL_PATTERN = re.compile(r"https?://\S+")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class RemoteModel(BaseModel):
    """Base for records coming back from the API (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _blank_to_none(value: Any) -> Any:
    # The API sends "" for unset dates
    if value == "":
        return None
    return value


BlankableDate = Annotated[Optional[datetime], BeforeValidator(_blank_to_none)]


class TaskStatus(str, Enum):
    """Workflow stages, one kanban column each."""

    TODO = "To do"
    IN_PROGRESS = "In progress"
    ON_APPROVAL = "On approval"
    DONE = "Done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class User(RemoteModel):
    """Signed-in user profile. Email cannot change after registration."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str = ""
    email: str = ""
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TokenPair(RemoteModel):
    access_token: str
    refresh_token: Optional[str] = None


class AuthResult(RemoteModel):
    """Body of a successful login or registration."""

    access_token: str
    refresh_token: str
    user: User


class Task(RemoteModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    project: str = ""
    tags: list[str] = Field(default_factory=list)
    due_date: BlankableDate = None
    reminder_at: BlankableDate = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("description", "project", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_payload(self, **overrides: Any) -> dict[str, Any]:
        """
        Full update body for this task.

        The API expects every field on update, so status changes and date
        moves resend the whole task with the changed fields overridden.
        """
        payload = {
            "title": self.title,
            "description": self.description or "",
            "status": self.status.value,
            "priority": self.priority.value,
            "project": self.project or "",
            "tags": list(self.tags),
            "dueDate": self.due_date.isoformat() if self.due_date else "",
            "reminderAt": self.reminder_at.isoformat() if self.reminder_at else "",
        }
        payload.update(overrides)
        return payload


class NoteLink(RemoteModel):
    url: str
    title: Optional[str] = None
    description: Optional[str] = None


class Note(RemoteModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    category: str = ""
    color: str = ""
    is_pinned: bool = False
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    links: list[NoteLink] = Field(default_factory=list)

    @field_validator("content", "category", "color", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def detected_links(self) -> list[dict[str, str]]:
        return extract_links(self.content)


class NotesPage(RemoteModel):
    notes: list[Note] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 1


class RepeatConfig(RemoteModel):
    weekdays: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    include_weekends: bool = False


class GoalStats(RemoteModel):
    total_days: int = 0
    completed_days: int = 0
    completion_rate: float = 0.0


class MonthlyGoal(RemoteModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str
    description: str = ""
    daily_time: str = ""
    timezone: str = ""
    repeat_config: RepeatConfig = Field(default_factory=RepeatConfig)
    status: GoalStatus = GoalStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    stats: Optional[GoalStats] = None

    @field_validator("description", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class GoalDetails(RemoteModel):
    goal: MonthlyGoal
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    progress: Any = None


class TopGoal(RemoteModel):
    goal_id: str
    title: str
    completion_rate: float = 0.0


class ProgressReport(RemoteModel):
    total_goals: int = 0
    active_goals: int = 0
    completed_tasks: int = 0
    total_tasks: int = 0
    completion_rate: float = 0.0
    top_goals: list[TopGoal] = Field(default_factory=list)


def extract_links(text: str) -> list[dict[str, str]]:
    """
    Find http(s) URLs embedded in free text.

    Returns:
        List of {"url", "text"} where text is the URL shortened to 50 chars
    """
    links = []
    for url in URL_PATTERN.findall(text or ""):
        label = url if len(url) <= 50 else url[:50] + "..."
        links.append({"url": url, "text": label})
    return links


# Form payloads. Each raises ValueError with a user-facing message; use
# validate_form() to turn failures into a ValidationError.


class FormModel(RemoteModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _clean_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is None:
        return None
    cleaned: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class TaskForm(FormModel):
    title: str
    description: str = ""
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    project: Optional[str] = None
    tags: Optional[list[str]] = None
    due_date: BlankableDate = None
    reminder_at: BlankableDate = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required")
        if len(value) > 100:
            raise ValueError("Title must be at most 100 characters")
        return value

    @field_validator("description")
    @classmethod
    def check_description(cls, value: str) -> str:
        if len(value) > 500:
            raise ValueError("Description must be at most 500 characters")
        return value

    @field_validator("project")
    @classmethod
    def check_project(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > 50:
            raise ValueError("Project name must be at most 50 characters")
        return value

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        value = _clean_tags(value)
        if value is not None and len(value) > 5:
            raise ValueError("At most 5 tags are allowed")
        return value


class NoteForm(FormModel):
    title: str
    content: Optional[str] = None
    tags: Optional[list[str]] = None
    category: Optional[str] = None
    color: Optional[str] = None
    is_pinned: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        if len(value) > 255:
            raise ValueError("Title must be at most 255 characters")
        return value

    @field_validator("content", "category")
    @classmethod
    def trim(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_tags(value) or None


class NoteUpdate(NoteForm):
    title: Optional[str] = None
    is_archived: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return NoteForm.check_title(value)


class GoalForm(FormModel):
    title: str
    description: Optional[str] = None
    daily_time: str = "06:00"
    timezone: str = "Asia/Ho_Chi_Minh"
    repeat_config: RepeatConfig = Field(default_factory=RepeatConfig)

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Goal title is required")
        if len(value) > 255:
            raise ValueError("Goal title must be at most 255 characters")
        return value

    @field_validator("daily_time")
    @classmethod
    def check_daily_time(cls, value: str) -> str:
        if not value:
            raise ValueError("Daily time is required")
        if not TIME_PATTERN.match(value):
            raise ValueError("Daily time must look like HH:MM")
        return value

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        if not value:
            raise ValueError("Timezone is required")
        return value

    @field_validator("repeat_config")
    @classmethod
    def check_weekdays(cls, value: RepeatConfig) -> RepeatConfig:
        if not value.weekdays:
            raise ValueError("Pick at least one day of the week")
        if any(day < 0 or day > 6 for day in value.weekdays):
            raise ValueError("Weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return value


class GoalUpdate(FormModel):
    title: Optional[str] = None
    description: Optional[str] = None
    daily_time: Optional[str] = None
    timezone: Optional[str] = None
    repeat_config: Optional[RepeatConfig] = None
    status: Optional[GoalStatus] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else GoalForm.check_title(value)

    @field_validator("daily_time")
    @classmethod
    def check_daily_time(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else GoalForm.check_daily_time(value)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else GoalForm.check_timezone(value)

    @field_validator("repeat_config")
    @classmethod
    def check_weekdays(cls, value: Optional[RepeatConfig]) -> Optional[RepeatConfig]:
        return None if value is None else GoalForm.check_weekdays(value)


class Credentials(FormModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def required(cls, value: str) -> str:
        if not value:
            raise ValueError("This field is required")
        return value


class Registration(FormModel):
    name: str
    email: str
    password: str
    confirm_password: str = Field(exclude=True)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if len(value.strip()) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value.strip()

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value

    @model_validator(mode="after")
    def passwords_match(self) -> "Registration":
        if self.password != self.confirm_password:
            raise ValueError("Password confirmation does not match")
        return self


class ProfileForm(FormModel):
    name: Optional[str] = None
    avatar_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(value) > 50:
            raise ValueError("Name must be at most 50 characters")
        return value

    @field_validator("avatar_url")
    @classmethod
    def check_avatar(cls, value: Optional[str]) -> Optional[str]:
        if value and not URL_PATTERN.fullmatch(value):
            raise ValueError("Invalid avatar URL")
        return value or None


class PasswordChange(FormModel):
    current_password: str
    new_password: str
    confirm_password: str = Field(exclude=True)

    @field_validator("current_password")
    @classmethod
    def check_current(cls, value: str) -> str:
        if not value:
            raise ValueError("Current password is required")
        return value

    @field_validator("new_password")
    @classmethod
    def check_new(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("New password must be at least 6 characters")
        return value

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChange":
        if self.new_password != self.confirm_password:
            raise ValueError("Password confirmation does not match")
        return self


def validate_form(form_cls: type[FormModel], data: dict[str, Any]) -> FormModel:
    """
    Validate raw form input before anything is sent to the API.

    Raises:
        ValidationError: with one message per offending field ("form" for
        whole-form checks such as password confirmation)
    """
    try:
        return form_cls.model_validate(data)
    except PydanticValidationError as e:
        errors: dict[str, str] = {}
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "form"
            message = error["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.setdefault(field, message)
        raise ValidationError(errors) from e
