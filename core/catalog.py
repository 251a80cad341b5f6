"""Default survey catalog and engine configuration rows.

The engine treats surveys as read-only; this seed exists so a fresh database
(and the demo endpoint) has something to submit against.
"""

from decimal import Decimal

from django.conf import settings
from django.db import transaction

from .constants import (
	CONFIG_MIN_WITHDRAWAL, CONFIG_MAX_WITHDRAWAL, CONFIG_BONUS_THRESHOLD, CONFIG_BONUS_AMOUNT, format_money,
)
from .models import Survey, SurveyQuestion, QuestionKind, SystemConfig

SINGLE, MULTI, TEXT = QuestionKind.SINGLE_CHOICE, QuestionKind.MULTI_CHOICE, QuestionKind.FREE_TEXT

DEFAULT_SURVEYS = [
	{
		"key": "main_survey",
		"title": "Main Survey",
		"description": "Learn more about our association and paediatric palliative care",
		"reward_amount": Decimal("5.00"),
		"questions": [
			("q1", "Did you know associations like ours existed before today?", SINGLE,
				["Yes", "No", "I have heard of them but do not know the details"]),
			("q2", "How important is supporting children in palliative care and their families?", SINGLE,
				["Very important", "Important", "Not very important", "Not necessary"]),
			("q3", "Have you ever collaborated with an NGO or charity?", SINGLE,
				["Yes, financially", "Yes, as a volunteer", "Yes, donating goods or services", "No, never"]),
			("q4", "How would you prefer to collaborate with an association like ours?", MULTI,
				["Donating money", "Volunteering", "Sharing on social media", "Donating goods or resources",
				"I am not interested"]),
			("q5", "What kind of support do families of children in palliative care need most?", SINGLE,
				["Financial", "Emotional / psychological", "Orthopaedic equipment", "Activities for the children",
				"All of the above"]),
			("q6", "Where in the world do you currently live?", TEXT, None),
			("q7", "How old are you?", SINGLE,
				["Under 18", "18 - 25", "26 - 40", "41 - 60", "Over 60"]),
			("q8", "How often do you donate to charities?", SINGLE,
				["Regularly (monthly or yearly)", "Occasionally (events, campaigns)", "Very rarely", "Never"]),
			("q9", "What would motivate you most to support a cause like this?", SINGLE,
				["Real testimonies from families", "Transparency in the use of funds",
				"A recommendation from someone close", "A quick way to contribute", "Other"]),
			("q10", "Would you like to receive information on how to collaborate?", SINGLE,
				["Yes, by email", "Yes, on social media", "No, thanks"]),
		],
	},
	{
		"key": "communication",
		"title": "Digital Communication",
		"description": "Digital communication preferences",
		"reward_amount": Decimal("1.00"),
		"questions": [
			("communication_q1", "How do you prefer to hear about charitable causes?", SINGLE,
				["Email", "SMS", "Social media", "I do not want to be contacted"]),
		],
	},
	{
		"key": "donations",
		"title": "Digital Donations",
		"description": "Experience with online donation platforms",
		"reward_amount": Decimal("1.00"),
		"questions": [
			("donations_q1", "Have you used digital platforms to donate before?", SINGLE,
				["Yes, often", "Occasionally", "Never", "I do not trust digital platforms"]),
		],
	},
	{
		"key": "socioeconomic",
		"title": "Socioeconomic Survey",
		"description": "General information about your situation (optional and anonymous)",
		"reward_amount": Decimal("1.00"),
		"questions": [
			("socioeconomic_q1", "What is your approximate income level?", SINGLE,
				["Prefer not to say", "Low", "Medium", "High"]),
		],
	},
	{
		"key": "volunteering",
		"title": "Volunteering",
		"description": "Interest in on-site volunteering",
		"reward_amount": Decimal("1.00"),
		"questions": [
			("volunteering_q1", "Would you be interested in volunteering on site?", SINGLE,
				["Yes, definitely", "Maybe", "No, but online yes", "Not interested"]),
		],
	},
	{
		"key": "feedback",
		"title": "Platform Feedback",
		"description": "Help us improve this experience",
		"reward_amount": Decimal("1.00"),
		"questions": [
			("feedback_q1", "How would you rate this survey platform?", SINGLE,
				["Very useful", "Useful", "Average", "Not very useful", "I suggest improvements"]),
		],
	},
]


def default_config_rows():
	return {
		CONFIG_MIN_WITHDRAWAL: (format_money(settings.MIN_WITHDRAWAL_AMOUNT), "Minimum withdrawal amount"),
		CONFIG_MAX_WITHDRAWAL: (format_money(settings.MAX_WITHDRAWAL_AMOUNT), "Maximum withdrawal amount"),
		CONFIG_BONUS_THRESHOLD: (str(settings.REFERRAL_BONUS_THRESHOLD), "Referrals needed for the bonus"),
		CONFIG_BONUS_AMOUNT: (format_money(settings.REFERRAL_BONUS_AMOUNT), "Referral bonus amount"),
	}


@transaction.atomic
def seed_default_catalog() -> dict:
	"""
	Create (or leave untouched) the default surveys, their questions and config rows.
	Idempotent: existing rows are never overwritten.
	"""
	surveys_created = questions_created = config_created = 0
	for entry in DEFAULT_SURVEYS:
		survey, created = Survey.objects.get_or_create(
			key=entry["key"],
			defaults={
				"title": entry["title"],
				"description": entry["description"],
				"reward_amount": entry["reward_amount"],
			},
		)
		surveys_created += int(created)
		for index, (key, text, kind, options) in enumerate(entry["questions"], start=1):
			_, created = SurveyQuestion.objects.get_or_create(
				survey=survey,
				key=key,
				defaults={"text": text, "kind": kind, "options": options, "order_index": index},
			)
			questions_created += int(created)

	for key, (value, description) in default_config_rows().items():
		_, created = SystemConfig.objects.get_or_create(key=key, defaults={"value": value, "description": description})
		config_created += int(created)

	return {"surveys": surveys_created, "questions": questions_created, "config": config_created}
