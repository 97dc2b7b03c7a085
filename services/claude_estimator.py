# services/claude_estimator.py
"""
Knowledge-based distance estimation with Claude

Used only when the Distance Matrix lookup fails. The model is asked for a
bare JSON object; fenced JSON is tolerated.
"""

import json
import math
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anthropic

from core.transport import TransportMode, SECONDS_PER_HOUR
from core.validation import Location

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are a distance estimation assistant for a novelty email service.

Estimate the distance between these two locations:
Origin: {origin}
Destination: {destination}

Provide your response in this exact JSON format (no markdown, just the JSON):
{{
  "distanceKm": <estimated distance in kilometers as a number>,
  "explanation": "<brief explanation of how you estimated this>",
  "originFormatted": "<formatted origin location name>",
  "destinationFormatted": "<formatted destination location name>"
}}

Be as accurate as possible based on your geographic knowledge. If coordinates are provided, use them. If addresses are provided, use your knowledge of those places."""

FENCED_JSON = re.compile(r'```(?:json)?\s*(\{.*?\})\s*```', re.DOTALL)


class EstimateError(Exception):
    """Claude could not produce a usable estimate"""
    pass


@dataclass
class DistanceEstimate:
    distance_meters: float
    distance_text: str
    duration_seconds: float
    origin: str
    destination: str
    explanation: str = ''


class ClaudeDistanceEstimator:
    def __init__(self, api_key: Optional[str], model: str,
                 max_tokens: int = 1000, client: Optional[anthropic.Anthropic] = None):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def estimate(self, origin: Location, destination: Location,
                 mode: TransportMode) -> DistanceEstimate:
        if not self.api_key:
            raise EstimateError('Anthropic API key is not configured')

        origin_label = origin.label()
        destination_label = destination.label()
        prompt = PROMPT_TEMPLATE.format(origin=origin_label, destination=destination_label)

        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{'role': 'user', 'content': prompt}],
            )
        except anthropic.AnthropicError as e:
            logger.error(f"Claude API error: {e}")
            raise EstimateError('Failed to estimate distance with Claude') from e

        parsed = self._parse_response(self._response_text(message))

        try:
            distance_km = float(parsed['distanceKm'])
        except (KeyError, TypeError, ValueError, OverflowError):
            raise EstimateError('Claude response did not include a numeric distanceKm')
        if not math.isfinite(distance_km):
            raise EstimateError(f"Claude returned a non-finite distance: {distance_km}")
        if distance_km < 0:
            raise EstimateError(f"Claude returned a negative distance: {distance_km}")

        return DistanceEstimate(
            distance_meters=distance_km * 1000,
            distance_text=f"{distance_km:.1f} km (estimated)",
            duration_seconds=distance_km / mode.speed_kmh * SECONDS_PER_HOUR,
            origin=parsed.get('originFormatted') or origin_label,
            destination=parsed.get('destinationFormatted') or destination_label,
            explanation=parsed.get('explanation') or '',
        )

    @staticmethod
    def _response_text(message: Any) -> str:
        for block in getattr(message, 'content', None) or []:
            if getattr(block, 'type', None) == 'text':
                return block.text
        return ''

    @staticmethod
    def _parse_response(text: str) -> Dict[str, Any]:
        candidate = text.strip()
        fenced = FENCED_JSON.search(candidate)
        if fenced:
            candidate = fenced.group(1)

        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.warning(f"Unparseable Claude response: {text[:200]!r}")
            raise EstimateError('Claude response was not valid JSON') from e

        if not isinstance(parsed, dict):
            raise EstimateError('Claude response was not a JSON object')
        return parsed
