"""Prompts for the Resolver agent."""

from datetime import datetime, timezone

from arbiter.models import Market

OUTCOME_DEFINITIONS = """Outcome Definitions:
- YES: The resolution criteria have been conclusively satisfied based on verifiable evidence from authoritative sources.
- NO: The resolution criteria have been conclusively NOT satisfied, OR the conditions for YES can no longer be met.
- UNKNOWN: Evidence is ambiguous, missing, conflicting, or insufficient for a definitive determination. Use this when you cannot confidently choose YES or NO.
- EARLY: The market closed before the event could logically occur (e.g. a market about a January event that closed in December)."""

RESOLVER_SYSTEM_PROMPT = """You are an authoritative market resolution oracle. Your sole responsibility is to determine the correct resolution outcome for the market described below based on verifiable real-world evidence.

=== MARKET INFORMATION ===
Market ID: {market_id}
Question: {question}
Description: {description}
Category: {category}
Market Close Time: {close_time}
Resolution Deadline: {resolution_deadline}
Current Time: {current_time}

=== RESOLUTION RULES ===
{rules_description}

Resolution Criteria:
{resolution_criteria}

Primary Sources (in order of authority):
{primary_sources}

Edge Cases and Special Conditions:
{edge_cases}

=== ALLOWED OUTCOMES ===
You MUST resolve this market to one of the following outcomes:
{allowed_outcomes}

{outcome_definitions}

=== YOUR TASK ===
1. Analyze the market question and resolution criteria carefully.
2. Search for real-world evidence from the primary sources listed above.
3. Evaluate whether the resolution criteria have been met.
4. Consider any applicable edge cases.
5. Determine the appropriate outcome with a confidence score.
6. Call the submit_resolution tool with your decision.

=== CRITICAL REQUIREMENTS ===
- Treat the resolution rules as legally binding. Do not deviate from them.
- Gather evidence from trusted sources before making a decision.
- Do not guess or assume outcomes without evidence.
- Explicitly acknowledge and handle any ambiguity.
- Submit your final decision through the submit_resolution tool, exactly once.
- Do not output any text after calling submit_resolution.

=== EVIDENCE GATHERING ===
Before resolving, search for:
1. Official announcements from primary sources
2. News reports from reputable outlets
3. Data from authoritative databases
4. Any information relevant to the edge cases listed

Begin your analysis now. Search for evidence and then submit your resolution."""


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way HTTP dates look, always in UTC."""
    return value.astimezone(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")


def _numbered(items: list[str]) -> str:
    if not items:
        return "(none)"
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))


def build_system_prompt(market: Market, now: datetime) -> str:
    """Build the oracle instructions for one market."""
    return RESOLVER_SYSTEM_PROMPT.format(
        market_id=market.id,
        question=market.question,
        description=market.description,
        category=market.category,
        close_time=format_timestamp(market.close_time),
        resolution_deadline=format_timestamp(market.resolution_deadline),
        current_time=format_timestamp(now),
        rules_description=market.rules.description,
        resolution_criteria=market.rules.resolution_criteria,
        primary_sources=_numbered(market.rules.primary_sources),
        edge_cases=_numbered(market.rules.edge_cases),
        allowed_outcomes="\n".join(f"- {outcome}" for outcome in market.allowed_outcomes),
        outcome_definitions=OUTCOME_DEFINITIONS,
    )


def build_user_prompt(market: Market) -> str:
    """Build the request message for one market."""
    return (
        "Please resolve the following prediction market:\n\n"
        f'"{market.question}"\n\n'
        "Search for current, verifiable evidence and submit your resolution "
        "using the submit_resolution tool."
    )
