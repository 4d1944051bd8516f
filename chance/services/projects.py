import logging

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from chance.errors import NotFoundError, StateError, ValidationError
from chance.models.project import Project, PROJECT_STATUSES, VISIBILITIES
from chance.models.project_completed import ProjectCompleted
from chance.models.project_member import ProjectMember
from chance.models.project_vote import ProjectVote
from chance.models.user import User
from chance.services.access import ensure_admin, ensure_owner

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("title", "description", "category", "impact", "effort")
UPDATABLE_FIELDS = REQUIRED_TEXT_FIELDS + (
    "team_size",
    "people_influenced",
    "type_of_people",
    "required_tools",
    "action_plan",
    "collaboration",
    "visibility",
    "status",
    "admin_notes",
)
SORTS = ("newest", "upvotes")


# --- Validation ---

def _check_positive(fields: dict, name: str, required: bool, nullable: bool) -> None:
    label = name.replace("_", " ").capitalize()
    if name not in fields:
        if required:
            raise ValidationError(name, f"{label} must be a positive number")
        return
    value = fields[name]
    if value is None and nullable:
        return
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValidationError(name, f"{label} must be a positive number")


def _validate_fields(fields: dict, creating: bool) -> None:
    for name in REQUIRED_TEXT_FIELDS:
        if name in fields or creating:
            value = fields.get(name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(name, f"{name.capitalize()} is required")

    _check_positive(fields, "team_size", required=creating, nullable=False)
    _check_positive(fields, "people_influenced", required=creating, nullable=not creating)

    if "status" in fields and fields["status"] not in PROJECT_STATUSES:
        raise ValidationError("status", f"Status must be one of {', '.join(PROJECT_STATUSES)}")
    if "visibility" in fields and fields["visibility"] not in VISIBILITIES:
        raise ValidationError("visibility", f"Visibility must be one of {', '.join(VISIBILITIES)}")

    for name in ("required_tools", "action_plan"):
        value = fields.get(name)
        if value is not None and not all(isinstance(item, str) for item in value):
            raise ValidationError(name, "Must be a list of strings")


# --- Reads ---

def get_project(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFoundError("Project")
    return project


def is_member(db: Session, project_id: int, user_id: int) -> bool:
    return db.query(ProjectMember).filter(
        ProjectMember.project_id == project_id,
        ProjectMember.user_id == user_id,
    ).first() is not None


def get_visible_project(db: Session, project_id: int, user: User | None) -> Project:
    """Private projects only exist for their creator and members."""
    project = get_project(db, project_id)
    if project.visibility == "private":
        if user is None or (project.creator_id != user.id and not is_member(db, project.id, user.id)):
            raise NotFoundError("Project")
    return project


def vote_count(db: Session, project_id: int) -> int:
    return db.query(func.count(ProjectVote.id)).filter(ProjectVote.project_id == project_id).scalar() or 0


def member_count(db: Session, project_id: int) -> int:
    return db.query(func.count(ProjectMember.user_id)).filter(ProjectMember.project_id == project_id).scalar() or 0


def _with_vote_counts(db: Session):
    votes = (
        db.query(ProjectVote.project_id, func.count(ProjectVote.id).label("vote_count"))
        .group_by(ProjectVote.project_id)
        .subquery()
    )
    return (
        db.query(Project, func.coalesce(votes.c.vote_count, 0))
        .outerjoin(votes, votes.c.project_id == Project.id)
        .options(joinedload(Project.creator))
    )


def _page(rows: list, limit: int, cursor_of):
    """Rows were fetched with limit + 1; the extra row only signals another page."""
    if len(rows) > limit:
        rows = rows[:limit]
        return rows, cursor_of(rows[-1])
    return rows, None


def _newest_cursor(row) -> str:
    return str(row[0].id)


def _upvote_cursor(row) -> str:
    project = row[0]
    return f"{project.likes}:{project.id}"


def _parse_cursor(sort: str, cursor: str) -> tuple[int, int]:
    """Returns (likes, id); likes is unused for "newest"."""
    try:
        if sort == "upvotes":
            likes, project_id = cursor.split(":")
            return int(likes), int(project_id)
        return 0, int(cursor)
    except ValueError:
        raise ValidationError("cursor", "Malformed cursor", location="query")


def list_projects(
    db: Session,
    category: str | None = None,
    status: str | None = None,
    sort: str = "newest",
    limit: int = 20,
    cursor: str | None = None,
):
    """
    Public projects, keyset-paginated.
    "newest" orders by id descending and its cursor is the last-seen id.
    "upvotes" orders by likes then id, both descending, and its cursor is
    "<likes>:<id>" of the last-seen project, so it stays usable after that
    project is deleted or hidden.
    Returns ([(project, vote_count)], next_cursor).
    """
    if sort not in SORTS:
        raise ValidationError("sort", f"Sort must be one of {', '.join(SORTS)}", location="query")

    query = _with_vote_counts(db).filter(Project.visibility == "public")
    if category:
        query = query.filter(Project.category == category)
    if status:
        query = query.filter(Project.status == status)

    if sort == "upvotes":
        if cursor is not None:
            anchor_likes, anchor_id = _parse_cursor(sort, cursor)
            query = query.filter(
                or_(Project.likes < anchor_likes, and_(Project.likes == anchor_likes, Project.id < anchor_id))
            )
        query = query.order_by(Project.likes.desc(), Project.id.desc())
    else:
        if cursor is not None:
            _, anchor_id = _parse_cursor(sort, cursor)
            query = query.filter(Project.id < anchor_id)
        query = query.order_by(Project.id.desc())

    rows = query.limit(limit + 1).all()
    return _page(rows, limit, _upvote_cursor if sort == "upvotes" else _newest_cursor)


def list_for_user(db: Session, user_id: int, limit: int | None = 20, cursor: int | None = None):
    """
    Projects the user created or belongs to, newest first.
    A limit of None returns all of them in one go.
    Returns ([(project, vote_count, is_member, is_creator)], next_cursor).
    """
    memberships = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    query = _with_vote_counts(db).filter(
        or_(Project.creator_id == user_id, Project.id.in_(memberships))
    ).order_by(Project.id.desc())
    if cursor is not None:
        query = query.filter(Project.id < cursor)

    if limit is None:
        rows, next_cursor = query.all(), None
    else:
        rows, next_cursor = _page(query.limit(limit + 1).all(), limit, lambda row: row[0].id)

    member_of = {
        project_id
        for (project_id,) in db.query(ProjectMember.project_id).filter(
            ProjectMember.user_id == user_id,
            ProjectMember.project_id.in_([project.id for project, _ in rows]),
        ).all()
    }
    annotated = [
        (project, votes, project.id in member_of, project.creator_id == user_id)
        for project, votes in rows
    ]
    return annotated, next_cursor


def list_members(db: Session, project_id: int, user: User | None = None) -> list[User]:
    get_visible_project(db, project_id, user)
    return (
        db.query(User)
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .filter(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at.asc(), User.id.asc())
        .all()
    )


# --- Writes ---

def create_project(db: Session, creator: User, fields: dict) -> Project:
    _validate_fields(fields, creating=True)

    project = Project(
        title=fields["title"].strip(),
        description=fields["description"].strip(),
        category=fields["category"].strip(),
        impact=fields["impact"].strip(),
        team_size=fields["team_size"],
        effort=fields["effort"].strip(),
        people_influenced=fields["people_influenced"],
        type_of_people=fields.get("type_of_people"),
        required_tools=list(fields.get("required_tools") or []),
        action_plan=list(fields.get("action_plan") or []),
        collaboration=fields.get("collaboration"),
        visibility=fields.get("visibility") or "public",
        status="open",
        likes=0,
        creator_id=creator.id,
    )
    db.add(project)
    try:
        db.flush()
        # Auto-join creator
        db.add(ProjectMember(project_id=project.id, user_id=creator.id))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(project)
    logger.info("Project %s created by user %s", project.id, creator.id)
    return project


def update_project(db: Session, project_id: int, user: User, fields: dict) -> Project:
    project = get_project(db, project_id)
    ensure_owner(project.creator_id, user, "update this project")

    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(sorted(unknown)[0], "Field cannot be changed")
    _validate_fields(fields, creating=False)

    for name, value in fields.items():
        setattr(project, name, value.strip() if name in REQUIRED_TEXT_FIELDS else value)
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, project_id: int, user: User, as_admin: bool = False) -> None:
    """Members, votes and completion rows go with the project, all or nothing."""
    project = get_project(db, project_id)
    if as_admin:
        ensure_admin(user)
    else:
        ensure_owner(project.creator_id, user, "delete this project")

    try:
        db.query(ProjectMember).filter(ProjectMember.project_id == project_id).delete(synchronize_session=False)
        db.query(ProjectVote).filter(ProjectVote.project_id == project_id).delete(synchronize_session=False)
        db.query(ProjectCompleted).filter(ProjectCompleted.project_id == project_id).delete(synchronize_session=False)
        db.query(Project).filter(Project.id == project_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Project %s deleted by user %s", project_id, user.id)


def join_project(db: Session, project_id: int, user: User) -> bool:
    """Returns False when the user was already a member."""
    project = get_visible_project(db, project_id, user)

    if is_member(db, project_id, user.id):
        return False
    if project.status != "open":
        raise StateError("Project is not open for new members")
    if member_count(db, project_id) >= project.team_size:
        raise StateError("Project team is full")

    db.add(ProjectMember(project_id=project_id, user_id=user.id))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent join for the same user already landed
        db.rollback()
        return False
    return True


def leave_project(db: Session, project_id: int, user: User, member_id: int | None = None) -> None:
    """Members may leave; the creator may also remove anyone but themself."""
    project = get_project(db, project_id)
    target_id = member_id if member_id is not None else user.id

    if target_id != user.id:
        ensure_owner(project.creator_id, user, "remove other members")
    if target_id == project.creator_id:
        raise StateError("The project creator cannot leave their own project")

    removed = db.query(ProjectMember).filter(
        ProjectMember.project_id == project_id,
        ProjectMember.user_id == target_id,
    ).delete(synchronize_session=False)
    if not removed:
        db.rollback()
        raise NotFoundError("Membership")
    db.commit()


def upvote_project(db: Session, project_id: int, user: User) -> bool:
    """Idempotent: only a user's first upvote counts. Returns whether it counted."""
    get_visible_project(db, project_id, user)

    existing = db.query(ProjectVote.id).filter(
        ProjectVote.project_id == project_id,
        ProjectVote.user_id == user.id,
    ).first()
    if existing is not None:
        return False

    db.add(ProjectVote(project_id=project_id, user_id=user.id))
    db.query(Project).filter(Project.id == project_id).update(
        {Project.likes: Project.likes + 1}, synchronize_session=False
    )
    try:
        db.commit()
    except IntegrityError:
        # Duplicate vote raced us; the unique constraint undoes the increment too
        db.rollback()
        return False
    return True


def complete_and_award(db: Session, project_id: int, awards: list[dict], requester: User) -> Project:
    """
    Mark a project completed and credit each listed user's influence.
    Either every award applies or none do.
    """
    ensure_admin(requester)
    project = get_project(db, project_id)

    try:
        project.status = "completed"
        for award in awards:
            user_id, points = award["user_id"], award["points"]
            if points < 0:
                raise ValidationError("points", "Points cannot be negative")
            updated = db.query(User).filter(User.id == user_id).update(
                {User.influence: User.influence + points}, synchronize_session=False
            )
            if not updated:
                raise NotFoundError("User")
            db.add(ProjectCompleted(user_id=user_id, project_id=project_id, points=points))
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(project)
    logger.info("Project %s completed; %d awards by admin %s", project_id, len(awards), requester.id)
    return project
