"""LangGraph agent definition for DevWatch."""

import sqlite3
from typing import Literal

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import SystemMessage, ToolMessage
from langchain_core.tools import BaseTool
from langgraph.checkpoint.sqlite import SqliteSaver
from langgraph.graph import END, START, MessagesState, StateGraph

from devwatch.config import CHECKPOINT_DB_PATH, DEFAULT_AGENT_MODEL

SYSTEM_PROMPT = """You are DevWatch, an assistant that keeps track of activity on GitHub repositories the user watches.

You help users:
- See new pull requests, issues and releases from their watched repositories
- Check for new activity on demand
- Mark activity as read or unread
- Watch and unwatch repositories
- Mute or snooze noisy repositories
- Understand errors and the GitHub API rate limit

When a user asks what's new, use the get_activities tool (set unread_only when they ask for unread items).
When a user asks to refresh or check now, use the check_now tool, then get_activities.
When a user asks about problems, the rate limit or the unread count, use the get_status tool.
Activity IDs look like "pr-owner/name-42"; use them with mark_as_read and mark_as_unread.
Repositories are always written as owner/name.
When the user's intent is unclear, ask a clarifying question rather than guessing.
Present activity in a readable format: repository, type, title, author and link.
Be concise but informative in your responses."""


def create_agent(
    tools: list[BaseTool],
    checkpoint_db_path: str = CHECKPOINT_DB_PATH,
    model_name: str = DEFAULT_AGENT_MODEL,
):
    """Create and compile the LangGraph agent.

    Args:
        tools: Tools to bind to the agent, normally from ``build_tools``.
        checkpoint_db_path: Path to SQLite database for LangGraph checkpointing.
        model_name: Anthropic model to use.

    Returns:
        Compiled LangGraph agent.
    """
    model = ChatAnthropic(model=model_name, temperature=0)
    model_with_tools = model.bind_tools(tools) if tools else model
    tools_by_name = {t.name: t for t in tools}

    def agent_node(state: MessagesState):
        """LLM call node that decides whether to use a tool or respond directly."""
        messages = [SystemMessage(content=SYSTEM_PROMPT)] + state["messages"]
        response = model_with_tools.invoke(messages)
        return {"messages": [response]}

    def tool_node(state: MessagesState):
        """Execute tool calls from the LLM response."""
        results = []
        last_message = state["messages"][-1]
        for tool_call in last_message.tool_calls:
            selected = tools_by_name[tool_call["name"]]
            result = selected.invoke(tool_call["args"])
            results.append(
                ToolMessage(content=str(result), tool_call_id=tool_call["id"])
            )
        return {"messages": results}

    def should_continue(state: MessagesState) -> Literal["tool_node", "__end__"]:
        """Route to tool execution or end based on LLM output."""
        last_message = state["messages"][-1]
        if last_message.tool_calls:
            return "tool_node"
        return END

    builder = StateGraph(MessagesState)
    builder.add_node("agent_node", agent_node)
    builder.add_node("tool_node", tool_node)

    builder.add_edge(START, "agent_node")
    builder.add_conditional_edges("agent_node", should_continue, ["tool_node", END])
    builder.add_edge("tool_node", "agent_node")

    checkpointer = SqliteSaver(sqlite3.connect(checkpoint_db_path, check_same_thread=False))
    return builder.compile(checkpointer=checkpointer)
