"""Refinement backend for Ollama-compatible model servers.

Each refinement is one blocking ``POST /api/generate`` call with a
timeout. Timeouts, connection failures, 429, and 5xx responses are
retried with backoff; anything else fails on the first attempt.
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Sequence

import httpx

from core.constants import DEFAULT_LLM_TEMPERATURE
from core.errors import OdmRefinementUnavailableError
from core.logging_config import get_logger
from core.retry import call_with_retries
from core.schema import Schema
from refine.adapter import RefinedSchema, apply_refinement
from refine.prompt import build_refinement_prompt, extract_json_object
from schema_io.json_schema import parse_json_schema, render_json_schema

_LOGGER = get_logger(__name__)


class OllamaRefiner:
    """Schema refiner backed by an Ollama ``/api/generate`` endpoint.

    Args:
        base_url: Server base URL, e.g. ``http://localhost:11434``.
        model: Model name to request.
        timeout_seconds: Timeout for connect, read, and write.
        retries: Retries allowed for transient failures.
        transport: Optional httpx transport, used by tests.
        sleep: Sleep function used between retries.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout_seconds: float,
        retries: int,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._url = base_url.rstrip("/") + "/api/generate"
        self._model = model
        self._timeout = httpx.Timeout(timeout_seconds)
        self._retries = retries
        self._transport = transport
        self._sleep = sleep

    def refine(
        self,
        schema: Schema,
        doc_context: str | None = None,
        temperature: float = DEFAULT_LLM_TEMPERATURE,
        samples: Sequence[Any] = (),
    ) -> RefinedSchema:
        """Ask the model to refine ``schema``.

        Args:
            schema: Inferred schema.
            doc_context: Optional documentation text.
            temperature: Sampling temperature.
            samples: Optional sample records shown to the model.

        Returns:
            Refined schema with rejected changes listed as warnings.

        Raises:
            OdmRefinementUnavailableError: If the server cannot be reached or
                returns an unusable reply.
        """
        prompt = build_refinement_prompt(render_json_schema(schema), doc_context, samples)
        payload = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": temperature},
        }
        started = time.monotonic()
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = call_with_retries(
                    lambda: _post(client, self._url, payload),
                    is_transient=_is_transient_http_error,
                    retries=self._retries,
                    description="llm_generate",
                    sleep=self._sleep,
                )
            except httpx.HTTPError as error:
                raise OdmRefinementUnavailableError(
                    f"Refinement request to {self._url} failed: {error}. "
                    "Check that the model server is running or disable refinement."
                ) from error
        refined = self._parse_reply(schema, response)
        _LOGGER.info(
            "refinement_completed",
            model=self._model,
            duration_seconds=round(time.monotonic() - started, 3),
            warnings=len(refined.warnings),
        )
        return refined

    def _parse_reply(self, schema: Schema, response: httpx.Response) -> RefinedSchema:
        try:
            body = response.json()
        except json.JSONDecodeError as error:
            raise OdmRefinementUnavailableError(
                f"Refinement server at {self._url} returned a non-JSON body. "
                "Check that the URL points to an Ollama-compatible server."
            ) from error
        reply = body.get("response", "") if isinstance(body, dict) else ""
        proposal_document = extract_json_object(str(reply))
        if proposal_document is None:
            raise OdmRefinementUnavailableError(
                f"Model {self._model} did not return a JSON object. "
                "Try another model or lower the temperature."
            )
        proposal, parse_errors = parse_json_schema(json.dumps(proposal_document))
        refined_schema, warnings = apply_refinement(schema, proposal)
        return RefinedSchema(
            schema=refined_schema,
            model=str(body.get("model") or self._model),
            warnings=tuple(parse_errors + warnings),
        )


def _post(client: httpx.Client, url: str, payload: dict[str, Any]) -> httpx.Response:
    response = client.post(url, json=payload)
    response.raise_for_status()
    return response


def _is_transient_http_error(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return isinstance(error, httpx.TransportError)
