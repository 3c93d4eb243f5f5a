"""
Prompt templates for the Author and Analyst refinement stages.
"""

from .domain import TurnContext


def build_context_section(turn_context: TurnContext | None) -> str:
    """Render the prior-turn material, skipping every empty field."""
    if turn_context is None:
        return ""

    section = ""
    if turn_context.user_prompt:
        section += f"\n<PREVIOUS_USER_PROMPT>\n{turn_context.user_prompt}\n</PREVIOUS_USER_PROMPT>\n"
    if turn_context.synthesis_text:
        section += f"\n<PREVIOUS_SYNTHESIS>\n{turn_context.synthesis_text}\n</PREVIOUS_SYNTHESIS>\n"
    if turn_context.mapping_text:
        section += f"\n<PREVIOUS_DECISION_MAP>\n{turn_context.mapping_text}\n</PREVIOUS_DECISION_MAP>\n"
    if turn_context.batch_text:
        section += (
            f"\n<PREVIOUS_BATCH_RESPONSES>\n{turn_context.batch_text}\n</PREVIOUS_BATCH_RESPONSES>\n"
        )
    if section:
        section += "\n"
    return section


def build_initialize_prompt(fragment: str) -> str:
    """Single-stage prompt for the first turn of a session (no prior context)."""
    return f"""You are a prompt refinement assistant. The user is about to open a new conversation with several AI models in parallel, and has written the draft below.

Your task: infer what the user is actually trying to achieve and rewrite the draft so every model understands the ask the same way.

<DRAFT_PROMPT>
{fragment}
</DRAFT_PROMPT>

Check:
- Is the ask unambiguous, or could models read it differently?
- Are vague terms grounded and the scope (broad exploration vs. focused answer) clear?
- Are constraints the user clearly cares about stated explicitly?

Output Format:

REFINED_PROMPT:
[The improved prompt. If no change is needed, return the draft unchanged.]

EXPLANATION:
[2-3 sentences: what you inferred about the intent and what you changed.]

Principles:
- Preserve the user's voice and direction
- Add clarity without adding verbosity
- Sometimes the draft is already right; say so

Begin."""


def build_author_prompt(fragment: str, turn_context: TurnContext | None = None) -> str:
    """Author stage: rewrite the fragment into a complete prompt using prior-turn context."""
    context_section = build_context_section(turn_context)
    return f"""You are the Author in a two-step prompt refinement process. The user is continuing a conversation with several AI models at once and has drafted a fragment of their next message.

Your task: read what came before, infer what the user is responding to, building on, or pushing back against, and turn the fragment into the complete prompt they meant to write.
{context_section}
<DRAFT_FRAGMENT>
{fragment}
</DRAFT_FRAGMENT>

Work through:

1. **Intent** - what is the user actually trying to do beyond what they literally wrote? Exploring, deciding, clarifying, challenging, or building?
2. **Continuity** - which earlier conclusions does this build on, and should they be referenced explicitly? Is the user pivoting?
3. **Clarity** - ground vague terms, make the scope explicit, state the constraints the user evidently cares about.
4. **Framing** - frame the ask to draw out depth, tensions and trade-offs rather than surface answers.

Write your reasoning first. Then write the line

FINAL OUTPUT:

followed by the finished prompt and nothing else. Preserve the user's voice; do not add verbosity for its own sake."""


def build_analyst_prompt(
    fragment: str,
    authored: str,
    turn_context: TurnContext | None = None,
    max_variants: int = 3,
) -> str:
    """Analyst stage: audit the authored prompt and propose alternative framings."""
    context_section = build_context_section(turn_context)
    return f"""You are the Analyst in a two-step prompt refinement process. Another model (the Author) has rewritten the user's draft fragment into a complete prompt. Audit that rewrite.
{context_section}
<ORIGINAL_FRAGMENT>
{fragment}
</ORIGINAL_FRAGMENT>

<AUTHORED_PROMPT>
{authored}
</AUTHORED_PROMPT>

Your task:
- Identify what the authored prompt de-emphasizes, drops, or assumes compared with the original fragment and the prior context.
- Propose up to {max_variants} alternative framings the user might actually prefer. Each should take a genuinely different angle, not reword the same ask.

Output Format:

AUDIT:
[A short paragraph naming what was de-emphasized or assumed.]

VARIANTS:
1. [first alternative framing]
2. [second alternative framing]
3. [third alternative framing]"""
