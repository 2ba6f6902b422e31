"""Provider-agnostic prompt rendering for chat turns.

Prompt structure:
- System turn first: the research-paper assistant role with the
  highlighted passage inlined
- Prior conversation history (user/assistant only)
- Current user message last

A user message whose turn failed has no assistant reply. Consecutive turns
of the same role are merged so roles always alternate.
"""

from blueberry.services.llm.types import Turn

SYSTEM_PROMPT_TEMPLATE = '''You are a helpful AI assistant helping someone understand a research paper.

The user has highlighted a specific passage from the paper, and their question is in direct context of this highlighted section.

Highlighted section from the paper:
"""
{highlighted_text}
"""

Please provide clear, concise, and helpful explanations. Pay special attention to the highlighted section when it is relevant to the question.'''


def render_prompt(
    highlighted_text: str,
    user_content: str,
    history: list[Turn],
) -> list[Turn]:
    """Build the turn list for one chat request.

    Args:
        highlighted_text: Verbatim selected text of the highlight.
        user_content: Current user message text.
        history: Previous turns of the conversation, oldest first, not
            including the current message.

    Returns:
        List of Turn objects, system turn first.
    """
    system_prompt = SYSTEM_PROMPT_TEMPLATE.format(highlighted_text=highlighted_text)
    turns = [Turn(role="system", content=system_prompt)]
    conversation = [turn for turn in history if turn.role != "system"]
    conversation.append(Turn(role="user", content=user_content))

    for turn in conversation:
        previous = turns[-1]
        if previous.role == turn.role:
            turns[-1] = Turn(role=turn.role, content=f"{previous.content}\n\n{turn.content}")
        else:
            turns.append(turn)
    return turns
