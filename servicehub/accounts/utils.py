"""JSON shapes for account objects, shared by every app's views."""


def skill_dict(skill):
    return {"id": skill.id, "name": skill.name, "category": skill.category}


def user_summary(user):
    """Name-only reference, used where another object points at a user."""
    if user is None:
        return None
    return {"id": user.id, "name": user.name}


def public_profile(user, *, skills=True):
    data = {
        "id": user.id,
        "name": user.name,
        "role": user.role,
        "bio": user.bio,
        "location": user.location_dict(),
        "average_rating": float(user.average_rating),
        "review_count": user.review_count,
        "verified": user.is_verified,
        "verified_at": user.verified_at,
        "date_joined": user.date_joined,
    }
    if skills:
        data["skills"] = [skill_dict(s) for s in user.skills.all()]
    return data


def private_profile(user):
    data = public_profile(user)
    data["email"] = user.email
    return data


def notification_dict(notification):
    return {
        "id": notification.id,
        "kind": notification.kind,
        "title": notification.title,
        "message": notification.message,
        "link": notification.url,
        "read": notification.is_read,
        "created_at": notification.created_at,
    }
