"""Closed set of outcomes the engine raises instead of raw storage errors.

Each error carries a stable ``code`` that the API layer returns verbatim.
StorageFailure is the only transient one: callers may retry it with the same inputs.
"""


class RewardsError(Exception):
	code = "rewards_error"

	def __init__(self, message: str | None = None):
		self.message = message or self.code
		super().__init__(self.message)


class AlreadyCompleted(RewardsError):
	code = "already_completed"


class SurveyNotFound(RewardsError):
	code = "survey_not_found"


class SurveyInactive(RewardsError):
	code = "survey_inactive"


class BelowMinimum(RewardsError):
	code = "below_minimum"


class AboveMaximum(RewardsError):
	code = "above_maximum"


class MissingDestination(RewardsError):
	code = "missing_destination"


class InsufficientBalance(RewardsError):
	code = "insufficient_balance"


class AccountNotFound(RewardsError):
	code = "account_not_found"


class WithdrawalNotFound(RewardsError):
	code = "withdrawal_not_found"


class InvalidTransition(RewardsError):
	code = "invalid_transition"


class ConstraintConflict(RewardsError):
	"""A concurrent writer won a uniqueness race we did not map to a more specific outcome."""
	code = "constraint_conflict"


class StorageFailure(RewardsError):
	"""Connectivity loss, lock/statement timeout, deadlock or serialization failure."""
	code = "storage_failure"
