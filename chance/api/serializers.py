"""Convert ORM rows into the plain dicts the API returns."""


def _iso(value):
    return value.isoformat() if value else None


def serialize_user_summary(user):
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "profile_image_url": user.profile_image_url,
        "is_verified": user.is_verified,
    }


def serialize_user(user, include_private: bool = False):
    data = {
        **serialize_user_summary(user),
        "school": user.school,
        "bio": user.bio,
        "instagram": user.instagram,
        "profile_completed": user.profile_completed,
        "role": user.role,
        "influence": user.influence,
        "created_at": _iso(user.created_at),
    }
    # Contact details stay with their owner
    if include_private:
        data["email"] = user.email
        data["whatsapp_number"] = user.whatsapp_number
    return data


def serialize_project(project, vote_count=None, **extra):
    data = {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "category": project.category,
        "impact": project.impact,
        "team_size": project.team_size,
        "effort": project.effort,
        "people_influenced": project.people_influenced,
        "type_of_people": project.type_of_people,
        "required_tools": project.required_tools or [],
        "action_plan": project.action_plan or [],
        "collaboration": project.collaboration,
        "likes": project.likes,
        "vote_count": project.likes if vote_count is None else vote_count,
        "creator_id": project.creator_id,
        "creator": serialize_user_summary(project.creator),
        "status": project.status,
        "visibility": project.visibility,
        "admin_notes": project.admin_notes,
        "created_at": _iso(project.created_at),
        "updated_at": _iso(project.updated_at),
    }
    data.update(extra)
    return data


def serialize_heartbeat(heartbeat, like_count=None, comment_count=None, liked_by_me=False):
    return {
        "id": heartbeat.id,
        "content": heartbeat.content,
        "image_url": heartbeat.image_url,
        "video_url": heartbeat.video_url,
        "visibility": heartbeat.visibility,
        "user_id": heartbeat.user_id,
        "author": serialize_user_summary(heartbeat.author),
        "like_count": heartbeat.likes if like_count is None else like_count,
        "comment_count": heartbeat.comments if comment_count is None else comment_count,
        "liked_by_me": liked_by_me,
        "created_at": _iso(heartbeat.created_at),
        "updated_at": _iso(heartbeat.updated_at),
    }


def serialize_comment(comment, liked_by_me=False):
    return {
        "id": comment.id,
        "heartbeat_id": comment.heartbeat_id,
        "content": comment.content,
        "likes": comment.likes,
        "liked_by_me": liked_by_me,
        "user_id": comment.user_id,
        "author": serialize_user_summary(comment.author),
        "created_at": _iso(comment.created_at),
        "updated_at": _iso(comment.updated_at),
    }


def serialize_ranking(row):
    user = row["user"]
    return {
        "rank": row["rank"],
        "user": serialize_user_summary(user),
        "influence": user.influence,
        "projects_completed": row["projects_completed"],
        "heartbeats": row["heartbeats"],
        "times_featured": row["times_featured"],
    }
