RAG_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using an internal knowledge base. "
    "Base your answer only on the numbered sources you are given and cite them."
)

FALLBACK_SYSTEM_PROMPT = "You are a helpful assistant."

ANSWER_SCHEMA = {
    "type": "object",
    "properties": {
        "answer": {"type": "string"},
        "sources": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "number": {"type": "integer"},
                    "type": {"type": "string"},
                    "id": {"type": "string"},
                    "excerpt": {"type": "string"},
                },
                "required": ["number", "type", "id"],
            },
        },
    },
    "required": ["answer"],
}


def create_rag_prompt(query: str, context: str) -> str:
    """Grounding prompt: the retrieved sources followed by the user's question"""
    return f"""Answer the question below using the knowledge base sources.

SOURCES:
{context}

QUESTION:
{query}

GUIDELINES:
- Use only information found in the sources
- Cite every source you rely on in "sources" with its number, Type and ID exactly as given
- Quote a short supporting passage in "excerpt"
- If the sources do not answer the question, say so plainly
"""


def create_fallback_prompt(query: str) -> str:
    """General-knowledge prompt used when nothing relevant was retrieved"""
    return f"""No matching content was found in the knowledge base.
Answer the question below from general knowledge and mention that the answer
is not based on internal documentation.

QUESTION:
{query}
"""
