"""
Two-stage prompt refinement pipeline (Author → Analyst).

Initialize mode runs one stage that rewrites a first-turn draft. Full mode
runs the Author stage (fatal on failure) followed by the Analyst stage
(failure degrades the result to Author-only). Each model call is resolved
through the injected provider registry, walks an ordered fallback list when
the requested provider has no adapter, and is bounded by a fixed timeout
delivered through an abort signal.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .domain import MAX_REFINER_VARIANTS, LegacyRefinerResult, RefinerResult, TurnContext
from .errors import NoProviderAvailableError, RefinerStageError
from .ports import ProviderAdapterPort, ProviderRegistryPort
from .prompts import build_analyst_prompt, build_author_prompt, build_initialize_prompt
from .refiner_parsing import parse_analyst_response, parse_initialize_response, split_author_response
from .signals import AbortSignal, timeout_signal

logger = logging.getLogger(__name__)

AUDIT_UNAVAILABLE = "Audit unavailable"

DEFAULT_FALLBACK_PROVIDERS = ("claude", "chatgpt", "gemini")
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_VARIANTS = MAX_REFINER_VARIANTS


class PromptRefiner:
    """Refine a user's draft fragment before it is dispatched to providers.

    Collaborators and tuning are injected so the control flow can be tested
    and re-configured without touching module globals.
    """

    def __init__(
        self,
        registry: ProviderRegistryPort,
        *,
        fallback_providers: Sequence[str] = DEFAULT_FALLBACK_PROVIDERS,
        preferred_models: Mapping[str, str] | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_variants: int = DEFAULT_MAX_VARIANTS,
    ):
        self.registry = registry
        self.fallback_providers = tuple(fallback_providers)
        self.preferred_models = dict(preferred_models or {})
        self.timeout_seconds = timeout_seconds
        if max_variants > MAX_REFINER_VARIANTS:
            logger.warning("max_variants=%d exceeds the limit; using %d", max_variants, MAX_REFINER_VARIANTS)
        self.max_variants = max(0, min(max_variants, MAX_REFINER_VARIANTS))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def refine(
        self,
        fragment: str,
        turn_context: TurnContext | None = None,
        author_model_id: str | None = None,
        analyst_model_id: str | None = None,
        is_initialize: bool = False,
        *,
        signal: AbortSignal | None = None,
    ) -> RefinerResult | None:
        """Return the refined prompt, its audit and variants, or ``None`` on Author failure.

        Raises ``NoProviderAvailableError`` when the Author stage cannot be
        routed to any provider.
        """
        if is_initialize:
            return await self._refine_initialize(fragment, author_model_id, signal)

        author = await self._run_author(fragment, turn_context, author_model_id, signal)
        if author is None:
            return None
        authored, explanation, raw_author, author_provider = author

        analyst_model_id = analyst_model_id or author_model_id
        try:
            analyst_prompt = build_analyst_prompt(
                fragment, authored, turn_context, max_variants=self.max_variants
            )
            raw_analyst, analyst_provider = await self._call_model(
                "analyst", analyst_prompt, analyst_model_id, signal
            )
        except Exception as e:
            logger.warning("Analyst stage failed, returning Author result only: %s", e)
            return RefinerResult(
                authored=authored,
                explanation=explanation,
                audit=AUDIT_UNAVAILABLE,
                variants=(),
                raw_author=raw_author,
                author_provider=author_provider,
            )

        audit, variants = parse_analyst_response(raw_analyst, max_variants=self.max_variants)
        return RefinerResult(
            authored=authored,
            explanation=explanation,
            audit=audit,
            variants=tuple(variants),
            raw_author=raw_author,
            raw_analyst=raw_analyst,
            author_provider=author_provider,
            analyst_provider=analyst_provider,
        )

    async def refine_prompt(
        self,
        draft_prompt: str,
        turn_context: TurnContext | None = None,
        *,
        signal: AbortSignal | None = None,
    ) -> LegacyRefinerResult | None:
        """Two-field wrapper for callers of the older single-stage contract."""
        result = await self.refine(draft_prompt, turn_context, signal=signal)
        if result is None:
            return None
        return LegacyRefinerResult(refined_prompt=result.authored, explanation=result.audit)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _refine_initialize(
        self,
        fragment: str,
        model_id: str | None,
        signal: AbortSignal | None,
    ) -> RefinerResult | None:
        try:
            raw, provider_id = await self._call_model(
                "initialize", build_initialize_prompt(fragment), model_id, signal
            )
        except NoProviderAvailableError:
            raise
        except Exception as e:
            logger.warning("Initialize refinement failed: %s", e)
            return None

        authored, explanation = parse_initialize_response(raw)
        if not authored:
            logger.warning("Initialize refinement produced an empty prompt")
            return None
        return RefinerResult(
            authored=authored,
            explanation=explanation,
            raw_author=raw,
            author_provider=provider_id,
        )

    async def _run_author(
        self,
        fragment: str,
        turn_context: TurnContext | None,
        model_id: str | None,
        signal: AbortSignal | None,
    ) -> tuple[str, str, str, str] | None:
        try:
            raw, provider_id = await self._call_model(
                "author", build_author_prompt(fragment, turn_context), model_id, signal
            )
        except NoProviderAvailableError:
            raise
        except Exception as e:
            logger.warning("Author stage failed: %s", e)
            return None

        authored, explanation = split_author_response(raw)
        if not authored:
            logger.warning("Author stage produced an empty prompt; aborting refinement")
            return None
        logger.debug("Author stage produced %d chars (explanation %d chars)", len(authored), len(explanation))
        return authored, explanation, raw, provider_id

    # ------------------------------------------------------------------
    # Model routing
    # ------------------------------------------------------------------

    def _resolve_adapter(self, model_id: str | None) -> ProviderAdapterPort:
        adapter = self.registry.get_adapter(model_id) if model_id else None
        if adapter is not None:
            return adapter

        for provider_id in self.fallback_providers:
            if self.registry.is_available(provider_id):
                adapter = self.registry.get_adapter(provider_id)
                if adapter is not None:
                    logger.info(
                        "Refiner model %r unavailable; falling back to %r", model_id, provider_id
                    )
                    return adapter
        raise NoProviderAvailableError(
            f"No provider adapter available for refiner (requested {model_id!r})"
        )

    async def _call_model(
        self,
        stage: str,
        prompt: str,
        model_id: str | None,
        signal: AbortSignal | None,
    ) -> tuple[str, str]:
        """Run one bounded model call and return ``(text, provider_id)``."""
        adapter = self._resolve_adapter(model_id)
        meta: dict[str, str] = {}
        preferred = self.preferred_models.get(adapter.provider_id.lower())
        if preferred:
            meta["model"] = preferred

        with timeout_signal(self.timeout_seconds, parent=signal) as stage_signal:
            envelope = await adapter.ask(prompt, {"meta": meta}, None, None, stage_signal)

        if not envelope.ok:
            raise RefinerStageError(
                stage,
                envelope.error_code or "unknown",
                str(envelope.meta.get("error", "")),
            )
        text = (envelope.text or "").strip()
        logger.debug("Refiner %s stage via %s returned %d chars", stage, adapter.provider_id, len(text))
        if not text:
            raise RefinerStageError(stage, "empty_response")
        return text, adapter.provider_id
