"""Placeholder sessions served when no real data can be extracted."""
from __future__ import annotations

from datetime import datetime, timedelta

from csdash.date_utils import now_utc
from csdash.models import Session, ToolCall, Turn

SAMPLE_SOURCE = "sample"
SAMPLE_NOTE = (
    "Note: This is sample data. To show your actual Airtable data, please ensure "
    "CSV download is enabled in your Airtable share settings."
)


def _turns(start: datetime, script: list[tuple[str, str, int]]) -> list[Turn]:
    return [
        Turn(speaker=speaker, text=text, timestamp=start + timedelta(seconds=offset))
        for speaker, text, offset in script
    ]


def _tools(start: datetime, calls: list[tuple[str, dict, int, bool]]) -> list[ToolCall]:
    return [
        ToolCall(name=name, payload=payload, timestamp=start + timedelta(seconds=offset), success=success)
        for name, payload, offset, success in calls
    ]


def sample_sessions(now: datetime | None = None) -> list[Session]:
    anchor = now or now_utc()

    billing_start = anchor - timedelta(hours=2)
    login_start = anchor - timedelta(minutes=45)
    data_loss_start = anchor - timedelta(minutes=15)

    return [
        Session(
            sessionId="session_001",
            customerId="customer_john_doe",
            createdAt=billing_start,
            status="resolved",
            escalationRecommended=False,
            tags=["billing", "refund"],
            sentiment="positive",
            turns=_turns(billing_start, [
                ("user", "Hi, I need help with a billing issue on my account.", 0),
                ("agent", "I'd be happy to help you with your billing concern. Let me look up your account details.", 30),
                ("user", "I was charged twice for my subscription this month.", 60),
                ("agent", "I can see the duplicate charge. I've processed a refund for the extra amount. "
                          "You should see it in 3-5 business days.", 90),
            ]),
            tools=_tools(billing_start, [
                ("account_lookup", {"customerId": "customer_john_doe"}, 20, True),
                ("billing_refund", {"amount": 29.99, "reason": "duplicate_charge"}, 80, True),
            ]),
        ),
        Session(
            sessionId="session_002",
            customerId="customer_jane_smith",
            createdAt=login_start,
            status="open",
            escalationRecommended=True,
            tags=["technical", "login"],
            sentiment="frustrated",
            turns=_turns(login_start, [
                ("user", "I can't login to my account. I've tried resetting my password multiple times.", 0),
                ("agent", "I apologize for the trouble. Let me check your account status and see what "
                          "might be causing this issue.", 30),
            ]),
            tools=_tools(login_start, [
                ("account_lookup", {"customerId": "customer_jane_smith"}, 20, True),
                ("password_reset", {"attempts": 3}, 40, False),
            ]),
        ),
        Session(
            sessionId="session_003",
            customerId="customer_mike_wilson",
            createdAt=data_loss_start,
            status="escalated",
            escalationRecommended=True,
            tags=["technical", "data_loss", "urgent"],
            sentiment="frustrated",
            turns=_turns(data_loss_start, [
                ("user", "All my data is missing from my account! This is urgent!", 0),
                ("agent", "I understand this is very concerning. Let me immediately escalate this to our "
                          "technical team and check for any recent system issues.", 45),
            ]),
            tools=_tools(data_loss_start, [
                ("account_lookup", {"customerId": "customer_mike_wilson"}, 30, True),
                ("data_recovery_scan", {"scope": "full_account"}, 60, True),
            ]),
        ),
    ]
