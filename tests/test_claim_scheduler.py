from datetime import datetime, timedelta, timezone

import pytest

from circle_api.domain.claims.service import ClaimScheduler
from circle_api.models import CLAIM_ACTIVE, CLAIM_CANCELLED, CLAIM_COMPLETED
from circle_api.shared.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError

from .support import at


class TestRequestClaim:
    def test_creates_active_claim_and_publishes(self, scheduler, resource, circle, alice, events):
        claim = scheduler.request_claim(resource.id, alice.id, at(14), at(17), notes="Deck repair")

        assert claim.status == CLAIM_ACTIVE
        assert claim.start_time == at(14)
        assert claim.end_time == at(17)
        assert claim.notes == "Deck repair"
        assert claim.returned_at is None

        slug, event_type, data = events.published[-1]
        assert (slug, event_type) == (circle.slug, "claim_created")
        assert data["id"] == claim.id

    def test_partial_overlap_is_rejected_with_blocking_claim(self, scheduler, resource, alice, bob):
        existing = scheduler.request_claim(resource.id, alice.id, at(14), at(17))

        with pytest.raises(ConflictError) as exc_info:
            scheduler.request_claim(resource.id, bob.id, at(16), at(18))

        assert exc_info.value.message == "Resource not available for this time period"
        assert exc_info.value.details == {"conflicting_claim_ids": [existing.id]}
        assert len(scheduler.list_claims(resource.id)) == 1

    def test_adjacent_window_is_accepted(self, scheduler, resource, alice, bob):
        scheduler.request_claim(resource.id, alice.id, at(14), at(17))

        claim = scheduler.request_claim(resource.id, bob.id, at(17), at(18))

        assert claim.status == CLAIM_ACTIVE

    def test_same_user_cannot_double_book(self, scheduler, resource, alice):
        scheduler.request_claim(resource.id, alice.id, at(9), at(10))

        with pytest.raises(ConflictError):
            scheduler.request_claim(resource.id, alice.id, at(9, 30), at(9, 45))

    def test_other_resources_do_not_conflict(self, scheduler, resources, resource, circle, alice, bob):
        ladder = resources.create_resource(circle.slug, bob, "Ladder")
        scheduler.request_claim(resource.id, alice.id, at(9), at(12))

        claim = scheduler.request_claim(ladder.id, alice.id, at(9), at(12))

        assert claim.resource_id == ladder.id

    def test_offsets_are_normalized_before_comparison(self, scheduler, resource, alice, bob):
        scheduler.request_claim(resource.id, alice.id, at(14), at(17))
        plus_two = timezone(timedelta(hours=2))

        # 18:00+02:00 == 16:00Z, inside the existing window
        with pytest.raises(ConflictError):
            scheduler.request_claim(
                resource.id,
                bob.id,
                datetime(2024, 1, 1, 18, 0, tzinfo=plus_two),
                datetime(2024, 1, 1, 20, 0, tzinfo=plus_two),
            )

    @pytest.mark.parametrize("start,end", [(at(10), at(10)), (at(11), at(10))])
    def test_empty_or_inverted_window_is_invalid(self, scheduler, resource, alice, start, end):
        with pytest.raises(ValidationError):
            scheduler.request_claim(resource.id, alice.id, start, end)

    def test_naive_datetimes_are_invalid(self, scheduler, resource, alice):
        with pytest.raises(ValidationError):
            scheduler.request_claim(resource.id, alice.id, datetime(2024, 1, 1, 9), datetime(2024, 1, 1, 10))

    def test_recurring_pattern_requires_flag(self, scheduler, resource, alice):
        with pytest.raises(ValidationError):
            scheduler.request_claim(resource.id, alice.id, at(9), at(10), recurring_pattern="weekly")

    def test_unknown_recurring_pattern_is_invalid(self, scheduler, resource, alice):
        with pytest.raises(ValidationError):
            scheduler.request_claim(
                resource.id, alice.id, at(9), at(10), is_recurring=True, recurring_pattern="daily"
            )

    def test_recurring_metadata_is_stored(self, scheduler, resource, alice):
        claim = scheduler.request_claim(
            resource.id, alice.id, at(9), at(10), is_recurring=True, recurring_pattern="weekly"
        )

        assert claim.is_recurring is True
        assert claim.recurring_pattern == "weekly"

    def test_notes_over_limit_are_invalid(self, scheduler, resource, alice):
        with pytest.raises(ValidationError):
            scheduler.request_claim(resource.id, alice.id, at(9), at(10), notes="x" * 501)

    def test_non_member_is_forbidden(self, scheduler, resource, outsider):
        with pytest.raises(ForbiddenError):
            scheduler.request_claim(resource.id, outsider.id, at(9), at(10))

    def test_former_member_is_forbidden(self, scheduler, circles, circle, resource, bob):
        circles.leave_circle(circle.slug, bob)

        with pytest.raises(ForbiddenError):
            scheduler.request_claim(resource.id, bob.id, at(9), at(10))

    def test_unknown_resource_is_not_found(self, scheduler, alice):
        with pytest.raises(NotFoundError):
            scheduler.request_claim("00000000-0000-4000-8000-000000000000", alice.id, at(9), at(10))

    def test_deleted_resource_is_not_found(self, scheduler, resources, resource, alice):
        resources.delete_resource(resource.id, alice)

        with pytest.raises(NotFoundError):
            scheduler.request_claim(resource.id, alice.id, at(9), at(10))


class TestCancelClaim:
    def test_cancel_frees_the_window(self, scheduler, resource, alice, bob, events):
        claim = scheduler.request_claim(resource.id, alice.id, at(14), at(17))

        cancelled = scheduler.cancel_claim(claim.id, alice.id)
        assert cancelled.status == CLAIM_CANCELLED
        assert events.types()[-1] == "claim_cancelled"

        replacement = scheduler.request_claim(resource.id, bob.id, at(14), at(17))
        assert replacement.status == CLAIM_ACTIVE

    def test_cancel_twice_conflicts(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(14), at(17))
        scheduler.cancel_claim(claim.id, alice.id)

        with pytest.raises(ConflictError):
            scheduler.cancel_claim(claim.id, alice.id)

    def test_cancel_completed_claim_conflicts(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(14), at(17))
        scheduler.return_claim(claim.id, alice.id, now=at(18))

        with pytest.raises(ConflictError):
            scheduler.cancel_claim(claim.id, alice.id)

    def test_only_claimant_may_cancel(self, scheduler, resource, alice, bob):
        claim = scheduler.request_claim(resource.id, alice.id, at(14), at(17))

        with pytest.raises(ForbiddenError):
            scheduler.cancel_claim(claim.id, bob.id)

        assert scheduler.get_claim(claim.id).status == CLAIM_ACTIVE

    def test_unknown_claim_is_not_found(self, scheduler, alice):
        with pytest.raises(NotFoundError):
            scheduler.cancel_claim("00000000-0000-4000-8000-000000000000", alice.id)


class TestReturnClaim:
    def test_early_return_shortens_window(self, scheduler, resource, alice, bob, events):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))

        returned = scheduler.return_claim(claim.id, alice.id, now=at(10, 30))

        assert returned.status == CLAIM_COMPLETED
        assert returned.end_time == at(10, 30)
        assert returned.returned_at == at(10, 30)
        assert events.types()[-1] == "claim_returned"

        # The rest of the morning is free again
        follow_up = scheduler.request_claim(resource.id, bob.id, at(10, 30), at(12))
        assert follow_up.status == CLAIM_ACTIVE

    def test_late_return_keeps_scheduled_end(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))

        returned = scheduler.return_claim(claim.id, alice.id, now=at(15))

        assert returned.status == CLAIM_COMPLETED
        assert returned.end_time == at(12)
        assert returned.returned_at == at(15)

    @pytest.mark.parametrize("now", [at(8), at(9)])
    def test_return_at_or_before_start_conflicts(self, scheduler, resource, alice, now):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))

        with pytest.raises(ConflictError):
            scheduler.return_claim(claim.id, alice.id, now=now)

        unchanged = scheduler.get_claim(claim.id)
        assert unchanged.status == CLAIM_ACTIVE
        assert unchanged.end_time == at(12)

    def test_return_uses_clock_when_now_is_omitted(self, db, events, locks, resource, alice):
        scheduler = ClaimScheduler(db, events, locks, clock=lambda: at(11))
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))

        returned = scheduler.return_claim(claim.id, alice.id)

        assert returned.end_time == at(11)

    def test_only_claimant_may_return(self, scheduler, resource, alice, bob):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))

        with pytest.raises(ForbiddenError):
            scheduler.return_claim(claim.id, bob.id, now=at(10))

    def test_return_cancelled_claim_conflicts(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))
        scheduler.cancel_claim(claim.id, alice.id)

        with pytest.raises(ConflictError):
            scheduler.return_claim(claim.id, alice.id, now=at(10))

    def test_return_twice_conflicts(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))
        scheduler.return_claim(claim.id, alice.id, now=at(10))

        with pytest.raises(ConflictError):
            scheduler.return_claim(claim.id, alice.id, now=at(11))


class TestUpdateClaim:
    def test_move_within_own_window_is_allowed(self, scheduler, resource, alice, events):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(12))

        moved = scheduler.update_claim(claim.id, alice.id, start=at(10), end=at(13))

        assert moved.start_time == at(10)
        assert moved.end_time == at(13)
        assert events.types()[-1] == "claim_updated"

    def test_move_onto_another_claim_conflicts(self, scheduler, resource, alice, bob):
        mine = scheduler.request_claim(resource.id, alice.id, at(9), at(10))
        theirs = scheduler.request_claim(resource.id, bob.id, at(11), at(12))

        with pytest.raises(ConflictError) as exc_info:
            scheduler.update_claim(mine.id, alice.id, end=at(11, 30))

        assert exc_info.value.details == {"conflicting_claim_ids": [theirs.id]}
        assert scheduler.get_claim(mine.id).end_time == at(10)

    def test_partial_update_is_validated_against_current_bounds(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(10))

        with pytest.raises(ValidationError):
            scheduler.update_claim(claim.id, alice.id, start=at(10))

    def test_notes_only_update(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(10))

        updated = scheduler.update_claim(claim.id, alice.id, notes="Bring the charger back")

        assert updated.notes == "Bring the charger back"
        assert updated.start_time == at(9)

    def test_cannot_update_cancelled_claim(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(10))
        scheduler.cancel_claim(claim.id, alice.id)

        with pytest.raises(ConflictError):
            scheduler.update_claim(claim.id, alice.id, notes="too late")

    def test_only_claimant_may_update(self, scheduler, resource, alice, bob):
        claim = scheduler.request_claim(resource.id, alice.id, at(9), at(10))

        with pytest.raises(ForbiddenError):
            scheduler.update_claim(claim.id, bob.id, notes="mine now")


class TestQueries:
    def test_availability_reports_blocking_claims(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(14), at(17))

        assert not scheduler.is_available(resource.id, at(16), at(18))
        assert scheduler.is_available(resource.id, at(17), at(18))
        assert [c.id for c in scheduler.find_conflicts(resource.id, at(13), at(15))] == [claim.id]

    def test_availability_can_exclude_a_claim(self, scheduler, resource, alice):
        claim = scheduler.request_claim(resource.id, alice.id, at(14), at(17))

        assert scheduler.is_available(resource.id, at(15), at(16), exclude_claim_id=claim.id)

    def test_inactive_claims_never_block(self, scheduler, resource, alice):
        cancelled = scheduler.request_claim(resource.id, alice.id, at(9), at(10))
        scheduler.cancel_claim(cancelled.id, alice.id)
        returned = scheduler.request_claim(resource.id, alice.id, at(11), at(12))
        scheduler.return_claim(returned.id, alice.id, now=at(13))

        assert scheduler.is_available(resource.id, at(9), at(12))

    def test_availability_validates_window(self, scheduler, resource):
        with pytest.raises(ValidationError):
            scheduler.is_available(resource.id, at(12), at(11))

    def test_list_claims_is_ordered_and_filterable(self, scheduler, resource, alice, bob):
        late = scheduler.request_claim(resource.id, bob.id, at(15), at(16))
        early = scheduler.request_claim(resource.id, alice.id, at(9), at(10))
        scheduler.cancel_claim(late.id, bob.id)

        assert [c.id for c in scheduler.list_claims(resource.id)] == [early.id, late.id]
        assert [c.id for c in scheduler.list_claims(resource.id, CLAIM_CANCELLED)] == [late.id]

    def test_unknown_claim_is_not_found(self, scheduler):
        with pytest.raises(NotFoundError):
            scheduler.get_claim("00000000-0000-4000-8000-000000000000")
