import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings
from django.db.models import Q

from .errors import InvalidOperation, StorefrontError
from .models import KnowledgeItem

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
HISTORY_LIMIT = 10


def save_item(question: str, answer: str, category: str = KnowledgeItem.Category.GENERAL, item: KnowledgeItem | None = None):
    question = (question or "").strip()
    answer = (answer or "").strip()
    if not question or not answer:
        raise InvalidOperation("La pregunta y la respuesta son obligatorias.")
    if category not in KnowledgeItem.Category.values:
        raise InvalidOperation(f"Categoría inválida: {category}")
    item = item or KnowledgeItem()
    item.question = question
    item.answer = answer
    item.category = category
    item.save()
    return item


def search(term: str = "", category: str = ""):
    items = KnowledgeItem.objects.all()
    if category:
        items = items.filter(category=category)
    term = (term or "").strip()
    if term:
        items = items.filter(Q(question__icontains=term) | Q(answer__icontains=term) | Q(category__icontains=term))
    return items.order_by("-created_at", "-id")


def build_system_prompt(items=None) -> str:
    """System prompt for the store assistant, built from the knowledge base."""
    items = list(items if items is not None else KnowledgeItem.objects.order_by("category", "id"))
    knowledge = "\n\n".join(f"[{item.category}]\nP: {item.question}\nR: {item.answer}" for item in items)
    return (
        "Sos el asistente de ventas de la tienda. Respondé en español rioplatense, de forma breve y amable.\n"
        "Usá únicamente la siguiente información. Si la respuesta no está, decí que no tenés ese dato "
        "y sugerí contactar a la tienda.\n\n"
        f"---\n{knowledge or 'Sin información cargada.'}\n---"
    )


def ask_assistant(message: str, history=None) -> str:
    message = (message or "").strip()
    if not message:
        raise InvalidOperation("El mensaje no puede estar vacío.")
    api_key = (settings.OPENAI_API_KEY or "").strip()
    if not api_key:
        raise StorefrontError("Falta configurar OPENAI_API_KEY.", code="assistant_config")

    messages = [{"role": "system", "content": build_system_prompt()}]
    messages.extend(history[-HISTORY_LIMIT:] if history else [])
    messages.append({"role": "user", "content": message})
    payload = {"model": settings.OPENAI_MODEL, "temperature": 0.2, "messages": messages}
    request = Request(
        OPENAI_CHAT_URL,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urlopen(request, timeout=30) as response:
            data = json.loads(response.read().decode("utf-8"))
        return data["choices"][0]["message"]["content"]
    except (HTTPError, URLError, ValueError, KeyError, IndexError) as exc:
        logger.error("Fallo la consulta al asistente: %s", exc)
        raise StorefrontError(f"No pude contactar a OpenAI: {exc}", code="assistant_unavailable") from exc


def export_training_jsonl(items=None) -> str:
    """One chat-format training example per knowledge item, as JSON Lines."""
    items = items if items is not None else KnowledgeItem.objects.order_by("id")
    system_prompt = build_system_prompt([])
    lines = []
    for item in items:
        example = {
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": item.question},
                {"role": "assistant", "content": item.answer},
            ]
        }
        lines.append(json.dumps(example, ensure_ascii=False))
    return "\n".join(lines) + ("\n" if lines else "")
