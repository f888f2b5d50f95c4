"""
Exception types for the pick reconciliation and scoring engine.

Duplicate and conflicting submissions are expected states and never raise.
These exceptions mark lookups and writes that could not be completed; the
services catch them at their boundary and report them in outcome objects.
"""


class PickemError(RuntimeError):
    """Base class for engine errors"""

    retryable = False


class EligibilityLookupError(PickemError):
    """Payment eligibility could not be determined"""

    retryable = True


class PickSetLookupError(PickemError):
    """Existing pick sets for a user/week could not be fetched"""

    retryable = True


class PartialAssignmentError(PickemError):
    """Only part of a pick set's rows were updated

    The transaction is rolled back and the whole set must be retried.
    """

    retryable = True

    def __init__(self, expected, updated):
        self.expected = expected
        self.updated = updated
        super().__init__(
            f"Pick set assignment updated {updated} of {expected} picks"
        )


class ScoreFeedError(PickemError):
    """The external score feed could not be read"""

    retryable = True
