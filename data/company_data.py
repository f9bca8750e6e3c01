"""
Company reference data for Winfomi.
Holiday calendar, policy summaries and demo records for the in-memory store.
In production, employees, allowances and requests live in Snowflake.
"""

COMPANY_NAME = "Winfomi"

HOLIDAYS = [
    {"date": "2025-01-01", "name": "New Year's Day", "type": "public"},
    {"date": "2025-01-14", "name": "Pongal", "type": "festival"},
    {"date": "2025-01-26", "name": "Republic Day", "type": "national"},
    {"date": "2025-04-14", "name": "Tamil New Year", "type": "festival"},
    {"date": "2025-05-01", "name": "May Day", "type": "public"},
    {"date": "2025-08-15", "name": "Independence Day", "type": "national"},
    {"date": "2025-08-27", "name": "Ganesh Chaturthi", "type": "festival", "optional": True},
    {"date": "2025-10-02", "name": "Gandhi Jayanti", "type": "national"},
    {"date": "2025-10-20", "name": "Diwali", "type": "festival"},
    {"date": "2025-12-25", "name": "Christmas", "type": "public"},
    {"date": "2026-01-01", "name": "New Year's Day", "type": "public"},
    {"date": "2026-01-15", "name": "Pongal", "type": "festival"},
    {"date": "2026-01-26", "name": "Republic Day", "type": "national"},
    {"date": "2026-04-14", "name": "Tamil New Year", "type": "festival"},
    {"date": "2026-05-01", "name": "May Day", "type": "public"},
    {"date": "2026-08-15", "name": "Independence Day", "type": "national"},
    {"date": "2026-09-14", "name": "Ganesh Chaturthi", "type": "festival", "optional": True},
    {"date": "2026-10-02", "name": "Gandhi Jayanti", "type": "national"},
    {"date": "2026-11-08", "name": "Diwali", "type": "festival"},
    {"date": "2026-12-25", "name": "Christmas", "type": "public"},
]

HOLIDAY_NOTES = {
    "optionalHolidays": "Optional holidays can be availed with prior manager approval (max 2 per year).",
    "workingDays": "Monday to Friday",
    "weekends": "Saturday and Sunday",
}

LEAVE_POLICY = {
    "ANNUAL": {
        "annual_allowance": 21,
        "accrual": "1.75 days per month",
        "carryover_limit": 5,
        "description": "Annual leave for vacations and personal travel",
    },
    "SICK": {
        "annual_allowance": 12,
        "documentation_required_after_days": 3,
        "description": "Sick leave; medical certificate required for 3 or more days",
    },
    "CASUAL": {
        "annual_allowance": 12,
        "min_notice_days": 1,
        "description": "Casual leave for personal errands and family events",
    },
    "MATERNITY": {
        "annual_allowance": 180,
        "description": "26 weeks of maternity leave at full pay",
    },
    "PATERNITY": {
        "annual_allowance": 15,
        "eligibility_months": 6,
        "description": "Paternity leave after 6 months of service",
    },
}

LEAVE_RULES = [
    "Minimum 2 days advance notice",
    "Manager approval required",
    "Emergency leave must be applied within 24 hours",
    "No leave during the first 3 months (probation)",
    "Public holidays between leave days count as leave days",
    "Half-day leave is available (0.5 day increments)",
]

WFH_POLICY = {
    "eligibility": [
        "Available to all permanent employees after probation",
        "Manager approval required",
        "Maximum 2 WFH days per week unless special circumstances apply",
    ],
    "process": [
        "Apply at least 1 day in advance through the HR assistant or People Portal",
        "Emergency WFH: notify your manager and apply the same day",
    ],
    "requirements": [
        "Stable internet connection (minimum 10 Mbps)",
        "VPN access for secure connectivity",
        "Availability during working hours (9 AM - 6 PM)",
    ],
    "not_allowed": [
        "Team meetings or client presentations unless pre-approved",
        "Month-end or quarter-end days for relevant departments",
    ],
}

# Mock employee directory (in production, this is in Snowflake)
MOCK_EMPLOYEES = {
    "john.doe@winfomi.com": {
        "employee_id": "E001",
        "name": "John Doe",
        "email": "john.doe@winfomi.com",
        "department": "Engineering",
    },
    "priya.sharma@winfomi.com": {
        "employee_id": "E002",
        "name": "Priya Sharma",
        "email": "priya.sharma@winfomi.com",
        "department": "Marketing",
    },
}

SEED_LEAVE_RECORDS = [
    {
        "id": "LEAVE_1",
        "employee_name": "John Doe",
        "employee_email": "john.doe@winfomi.com",
        "leave_type": "ANNUAL",
        "start_date": "2025-12-18",
        "end_date": "2025-12-22",
        "reason": "Christmas vacation",
        "status": "Approved",
        "duration_days": 5,
        "is_half_day": False,
    },
]


def get_holidays(year: int | None = None, month: int | None = None) -> list[dict]:
    """Holidays, optionally narrowed to a year and month."""
    holidays = HOLIDAYS
    if year is not None:
        holidays = [h for h in holidays if int(h["date"][:4]) == year]
    if month is not None:
        holidays = [h for h in holidays if int(h["date"][5:7]) == month]
    return [dict(h) for h in holidays]


def get_leave_allowances() -> dict[str, float]:
    return {leave_type: policy["annual_allowance"] for leave_type, policy in LEAVE_POLICY.items()}
