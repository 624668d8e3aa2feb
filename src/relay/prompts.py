from dataclasses import dataclass
from enum import Enum


class PromptVariant(str, Enum):
    REWRITE = "rewrite"
    SUPPLEMENT = "supplement"
    GENERAL = "general"


@dataclass(frozen=True)
class Persona:
    name: str = "GrowBot"
    topic: str = "gardening"


NO_COMPLETION_FALLBACK = (
    "I'm sorry, I couldn't find an answer to that in my knowledge base. "
    "Could you try rephrasing your question?"
)
DEFAULT_FALLBACK = (
    "I'm not sure about that one yet. Try asking me about planting, watering, soil, or pests!"
)


def system_prompt(variant: PromptVariant, persona: Persona) -> str:
    intro = f"You are {persona.name}, a helpful {persona.topic} assistant."
    if variant is PromptVariant.REWRITE:
        return (
            f"{intro} You answer questions using ONLY the provided knowledge base information. "
            "Never make up information or use general knowledge."
        )
    if variant is PromptVariant.SUPPLEMENT:
        return (
            f"{intro} Start from the provided knowledge base information and fill gaps with "
            f"well-established {persona.topic} knowledge. Never contradict the knowledge base."
        )
    return f"{intro} Answer from well-established {persona.topic} knowledge. Be accurate and practical."


def build_rewrite_prompt(question: str, kb_text: str, confidence: str, persona: Persona) -> str:
    return f"""You are answering a {persona.topic} question for {persona.name}. Follow these rules STRICTLY:

STRICT RULES:
1. Answer ONLY using the SOURCE DOCUMENT below - nothing else!
2. If the answer is not in the source, say: "I don't have specific information about that in my knowledge base."
3. Do NOT add information from general knowledge or make assumptions
4. Do NOT infer or extrapolate beyond what's explicitly written
5. Keep your answer natural, conversational, and helpful
6. Make it 2-4 sentences maximum
7. Directly address the user's specific question

SOURCE DOCUMENT (TRUTH):
{kb_text}

USER'S QUESTION: "{question}"

CONFIDENCE LEVEL: {confidence}

YOUR ANSWER (conversational tone, 2-4 sentences):"""


def build_supplement_prompt(question: str, kb_text: str, persona: Persona) -> str:
    return f"""A user asked {persona.name} a {persona.topic} question. The knowledge base only partially covers it.

PARTIAL KNOWLEDGE BASE INFORMATION:
{kb_text}

USER'S QUESTION: "{question}"

Use the knowledge base information first, then add widely accepted {persona.topic} advice to complete the answer.
Do not contradict the knowledge base. Keep it to 2-4 conversational sentences."""


def build_general_prompt(question: str, persona: Persona) -> str:
    return f"""The {persona.name} knowledge base has no entry for this question.

USER'S QUESTION: "{question}"

If the question is about {persona.topic}, answer it in 2-4 conversational sentences using well-established advice.
If it is not, politely say you can only help with {persona.topic} questions."""
