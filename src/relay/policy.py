"""Answer resolution policy.

Resolution happens in two pure steps so the pipeline owns the only
side effect (the completion call):

1. ``plan_resolution`` looks at the top knowledge answer and whether a
   completion service is configured, and returns a ``ResolutionPlan``: the
   text to fall back on, plus at most one ``CompletionRequest``.
2. ``finish_resolution`` takes that plan and the ``CompletionOutcome`` (or
   ``None`` when nothing was requested) and picks the final text and its
   ``AnswerSource`` tag.

Confidence acts as a trust gate. HIGH and MEDIUM answers may only be
restated by the model; LOW answers may be supplemented; NO_MATCH answers
are returned verbatim.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .prompts import (
    DEFAULT_FALLBACK,
    NO_COMPLETION_FALLBACK,
    Persona,
    PromptVariant,
    build_general_prompt,
    build_rewrite_prompt,
    build_supplement_prompt,
    system_prompt,
)
from .text import contains_phrase
from .types import AnswerSource, CompletionOutcome, ConfidenceLevel, KnowledgeBaseResult, ResolutionResult

MIN_COMPLETION_LENGTH = 10
REFUSAL_PHRASES: Tuple[str, ...] = ("i don't have", "i cannot find")

# (temperature, max_tokens) per prompt variant
SAMPLING = {
    PromptVariant.REWRITE: (0.2, 300),
    PromptVariant.SUPPLEMENT: (0.3, 350),
    PromptVariant.GENERAL: (0.5, 300),
}


@dataclass(frozen=True)
class CompletionRequest:
    variant: PromptVariant
    system_prompt: str
    user_prompt: str
    temperature: float
    max_tokens: int


@dataclass(frozen=True)
class ResolutionPlan:
    kb_result: KnowledgeBaseResult
    fallback_text: str
    fallback_source: AnswerSource
    request: Optional[CompletionRequest] = None
    enhanced_source: Optional[AnswerSource] = None
    error_source: Optional[AnswerSource] = None
    reject_refusals: bool = False


def completion_rejections(text: str, reject_refusals: bool) -> List[str]:
    """Return the reasons a completion cannot be shown, empty if it can."""
    reasons = []
    if len(text.strip()) < MIN_COMPLETION_LENGTH:
        reasons.append("too_short")
    if reject_refusals and contains_phrase(text, REFUSAL_PHRASES):
        reasons.append("refusal")
    return reasons


def _request(variant: PromptVariant, persona: Persona, user_prompt: str) -> CompletionRequest:
    temperature, max_tokens = SAMPLING[variant]
    return CompletionRequest(
        variant=variant,
        system_prompt=system_prompt(variant, persona),
        user_prompt=user_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
    )


def plan_resolution(
    kb_result: KnowledgeBaseResult,
    completion_available: bool,
    persona: Optional[Persona] = None,
) -> ResolutionPlan:
    persona = persona or Persona()
    question = kb_result.query_text
    top = kb_result.top_answer

    if top is None or not top.text.strip():
        if not completion_available:
            return ResolutionPlan(kb_result, NO_COMPLETION_FALLBACK, AnswerSource.NO_COMPLETION_FALLBACK)
        return ResolutionPlan(
            kb_result,
            fallback_text=DEFAULT_FALLBACK,
            fallback_source=AnswerSource.DEFAULT_FALLBACK,
            request=_request(PromptVariant.GENERAL, persona, build_general_prompt(question, persona)),
            enhanced_source=AnswerSource.GENERAL_KNOWLEDGE,
            error_source=AnswerSource.DEFAULT_ERROR_FALLBACK,
        )

    level = top.confidence_level
    if level is ConfidenceLevel.NO_MATCH:
        return ResolutionPlan(kb_result, top.text, AnswerSource.KB_NO_MATCH)

    if not completion_available:
        return ResolutionPlan(kb_result, top.text, AnswerSource.KB_ONLY)

    if level in (ConfidenceLevel.HIGH, ConfidenceLevel.MEDIUM):
        return ResolutionPlan(
            kb_result,
            fallback_text=top.text,
            fallback_source=AnswerSource.KB_ORIGINAL,
            request=_request(
                PromptVariant.REWRITE,
                persona,
                build_rewrite_prompt(question, top.text, level.value, persona),
            ),
            enhanced_source=AnswerSource.KB_ENHANCED,
            error_source=AnswerSource.KB_ERROR_FALLBACK,
            reject_refusals=True,
        )

    return ResolutionPlan(
        kb_result,
        fallback_text=top.text,
        fallback_source=AnswerSource.KB_FALLBACK,
        request=_request(PromptVariant.SUPPLEMENT, persona, build_supplement_prompt(question, top.text, persona)),
        enhanced_source=AnswerSource.HYBRID,
        error_source=AnswerSource.HYBRID_ERROR_FALLBACK,
    )


def finish_resolution(plan: ResolutionPlan, outcome: Optional[CompletionOutcome] = None) -> ResolutionResult:
    text, source = plan.fallback_text, plan.fallback_source
    if plan.request is not None and outcome is not None:
        if outcome.error is not None:
            source = plan.error_source or source
        elif outcome.text is not None and not completion_rejections(outcome.text, plan.reject_refusals):
            text, source = outcome.text.strip(), plan.enhanced_source or source

    kb = plan.kb_result
    return ResolutionResult(
        query_text=kb.query_text,
        fulfillment_text=text,
        answer_source=source,
        knowledge_answers=kb.answers,
        detected_intent=kb.intent_name,
        intent_confidence=kb.intent_confidence,
    )
