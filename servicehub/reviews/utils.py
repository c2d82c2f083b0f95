from accounts.utils import user_summary


def review_dict(review):
    return {
        "id": review.id,
        "application_id": review.application_id,
        "seeker_id": review.seeker_id,
        "provider_id": review.provider_id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
    }


def provider_review_dict(review):
    """Public listing: the review joined with its author's name."""
    data = review_dict(review)
    data["seeker"] = user_summary(review.seeker)
    return data


def own_review_dict(review):
    """Author's listing: the review with the provider's name and the reviewed post's title."""
    data = review_dict(review)
    data["provider"] = user_summary(review.provider)
    application = review.application
    data["post"] = {"id": application.post_id, "title": application.post.title} if application else None
    return data
