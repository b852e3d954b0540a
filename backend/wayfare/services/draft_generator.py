"""Draft generator — turns cities + catalog activities into an unpriced day plan.

Uses the LLM when one is configured and falls back to a deterministic planner.
"""

import json
import logging

from pydantic import ValidationError

from wayfare.schemas.itinerary import DraftDay, DraftLeg, DraftTree
from wayfare.services.llm_client import LLMClient, llm_client, parse_json_reply

logger = logging.getLogger(__name__)

ACTIVITIES_PER_DAY = 2

SYSTEM_PROMPT = """You are a travel itinerary planner. Given a list of cities and the
activities available in each city, arrange them into a day-by-day plan.

Rules:
- Use ONLY the activity names provided for each city, spelled exactly as given
- Each activity appears at most once in the whole plan
- Every day holds 1-3 activities; group activities that are close to each other
- Every city gets at least one day
- You may reorder the cities to minimise backtracking, but include every city exactly once
- transport_mode is how the traveller leaves this city for the next one: "Flight", "Car" or "Ferry"
  (use "Car" for short road distances, "Ferry" only for island hops); null for the last city

Respond ONLY with valid JSON, no markdown, no preamble:
{
    "title": "Short trip title",
    "subtitle": "One line description",
    "legs": [
        {
            "city": "City Name",
            "transport_mode": "Flight",
            "days": [{"activities": ["Activity name", "Activity name"]}]
        }
    ]
}"""


class DraftGenerator:
    """Produces a DraftTree for a set of cities."""

    def __init__(self, client: LLMClient | None = None):
        self._client = client or llm_client

    async def generate(
        self,
        city_names: list[str],
        city_activities: dict[str, list[str]],
        max_retries: int = 1,
    ) -> DraftTree:
        if not city_names:
            raise ValueError("At least one city is required")

        if self._client.available:
            user = json.dumps(
                {"cities": [{"city": name, "activities": city_activities.get(name, [])} for name in city_names]}
            )
            raw = ""
            for attempt in range(max_retries + 1):
                try:
                    raw = await self._client.complete(
                        system=SYSTEM_PROMPT, user=user, max_tokens=3000, temperature=0, json_mode=True
                    )
                    draft = DraftTree.model_validate(parse_json_reply(raw))
                    return self._sanitize(draft, city_names, city_activities)
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning(f"Draft attempt {attempt + 1}: invalid response: {e}\nRaw: {raw[:500]}")
                except RuntimeError as e:
                    logger.error(f"Draft attempt {attempt + 1}: LLM error: {e}")
                    break

        return self.fallback(city_names, city_activities)

    def fallback(self, city_names: list[str], city_activities: dict[str, list[str]]) -> DraftTree:
        """Two activities per day in catalog order, one day minimum per city."""
        legs = []
        for i, name in enumerate(city_names):
            names = city_activities.get(name, [])
            days = [
                DraftDay(activities=names[k:k + ACTIVITIES_PER_DAY])
                for k in range(0, len(names), ACTIVITIES_PER_DAY)
            ] or [DraftDay()]
            legs.append(DraftLeg(
                city=name,
                days=days,
                transport_mode="Flight" if i < len(city_names) - 1 else None,
            ))
        title = " - ".join(city_names)
        return DraftTree(title=title, subtitle=f"{len(city_names)} cities", legs=legs)

    def _sanitize(
        self, draft: DraftTree, city_names: list[str], city_activities: dict[str, list[str]]
    ) -> DraftTree:
        """Drop unknown cities/activities and append any city the LLM forgot."""
        known = {name.lower(): name for name in city_names}
        seen_cities: set[str] = set()
        legs = []
        for leg in draft.legs:
            name = known.get(leg.city.strip().lower())
            if name is None or name in seen_cities:
                logger.warning(f"Draft returned unexpected city {leg.city!r}, dropping")
                continue
            seen_cities.add(name)
            allowed = set(city_activities.get(name, []))
            used: set[str] = set()
            days = []
            for day in leg.days:
                acts = [a for a in day.activities if a in allowed and a not in used]
                used.update(acts)
                days.append(DraftDay(activities=acts))
            legs.append(DraftLeg(city=name, days=days or [DraftDay()], transport_mode=leg.transport_mode))

        for name in city_names:
            if name not in seen_cities:
                legs.extend(self.fallback([name], city_activities).legs)

        return DraftTree(title=draft.title, subtitle=draft.subtitle, legs=legs)


draft_generator = DraftGenerator()
