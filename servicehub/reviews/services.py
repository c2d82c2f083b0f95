"""Review lifecycle and the provider rating projection."""

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError
from django.db.models import Avg, Count

from accounts.models import Notification, User
from accounts.notifications import notify
from posts.models import Application, ApplicationStatus
from servicehub.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from servicehub.persistence import Store

from .forms import ReviewForm
from .models import Review

logger = logging.getLogger(__name__)

DUPLICATE_REVIEW = "Review already submitted for this application"


def round_rating(value) -> Decimal:
    """Half-up to one decimal place: 4.25 gives 4.3, not banker's 4.2."""
    if value is None:
        return Decimal("0.0")
    return Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


class RatingAggregator:
    def __init__(self, store: Store):
        self.store = store

    def recompute(self, provider_id):
        """Rewrite ``average_rating`` and ``review_count`` from the provider's reviews.

        Idempotent: with no review changes in between, repeated calls store the
        same values.
        """
        with self.store.atomic():
            # Serializes concurrent recomputes for one provider.
            self.store.query(User).select_for_update().filter(pk=provider_id).first()
            stats = self.store.query(Review).for_provider(provider_id).aggregate(avg=Avg("rating"), n=Count("id"))
            average = round_rating(stats["avg"]) if stats["n"] else Decimal("0.0")
            count = stats["n"] or 0
            self.store.query(User).filter(pk=provider_id).update(average_rating=average, review_count=count)

        logger.info("Rating recomputed: provider=%s average=%s count=%s", provider_id, average, count)
        return average, count


class ReviewManager:
    def __init__(self, store: Store, notifier, aggregator: RatingAggregator | None = None):
        self.store = store
        self.notifier = notifier
        self.aggregator = aggregator or RatingAggregator(store)

    def create(self, actor, data):
        if getattr(actor, "role", None) != User.Role.SEEKER:
            raise Forbidden("Only seekers can write reviews")

        form = ReviewForm(data)
        if not form.is_valid():
            raise ValidationFailed.from_form(form)
        cleaned = form.cleaned_data

        application = self.store.get(Application, cleaned["application_id"], select_related=("post",))
        if application is None:
            raise NotFound("Application not found")
        if application.status != ApplicationStatus.ACCEPTED:
            raise InvalidState("Can only review accepted applications")
        if application.post.owner_id != actor.pk:
            raise Forbidden("Forbidden: you do not own this post")
        if self.store.query(Review).filter(application=application).exists():
            raise Conflict(DUPLICATE_REVIEW)

        try:
            with self.store.atomic():
                review = self.store.save(
                    Review(
                        seeker=actor,
                        provider_id=application.provider_id,
                        application=application,
                        rating=cleaned["rating"],
                        comment=cleaned.get("comment") or "",
                    )
                )
                # The review and the projection it feeds commit together.
                self.aggregator.recompute(review.provider_id)
        except IntegrityError:
            raise Conflict(DUPLICATE_REVIEW)

        logger.info("Review created: review_id=%s provider=%s rating=%s", review.id, review.provider_id, review.rating)
        notify(
            self.notifier,
            review.provider_id,
            Notification.Kind.NEW_REVIEW,
            "You received a new review",
            f"{actor.name} left you a {review.rating}-star review.",
            f"/users/{review.provider_id}",
        )
        return review

    def list_for_provider(self, provider_id):
        return list(self.store.query(Review).for_provider(provider_id).select_related("seeker").recent())

    def list_own(self, actor):
        if getattr(actor, "role", None) != User.Role.SEEKER:
            raise Forbidden()
        return list(
            self.store.query(Review)
            .by_seeker(actor)
            .select_related("provider", "application__post")
            .recent()
        )

    def delete(self, actor, review_id):
        review = self.store.get(Review, review_id)
        if review is None:
            raise NotFound("Review not found")
        if review.seeker_id != actor.pk:
            raise Forbidden("Forbidden: not your review")

        provider_id = review.provider_id
        with self.store.atomic():
            self.store.delete(review)
            self.aggregator.recompute(provider_id)
        logger.info("Review deleted: review_id=%s provider=%s", review_id, provider_id)
