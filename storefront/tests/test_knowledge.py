import json
from unittest.mock import patch
from urllib.error import URLError

from django.test import TestCase, override_settings

from storefront import knowledge
from storefront.errors import InvalidOperation, StorefrontError
from storefront.models import KnowledgeItem


class KnowledgeBaseTests(TestCase):
    def setUp(self):
        self.shipping = knowledge.save_item("¿Hacen envíos?", "Sí, a todo el país.", KnowledgeItem.Category.SHIPPING)
        self.payments = knowledge.save_item("¿Qué medios de pago aceptan?", "Mercado Pago y transferencia.", "Pagos")

    def test_save_item_validates(self):
        with self.assertRaises(InvalidOperation):
            knowledge.save_item("", "respuesta")
        with self.assertRaises(InvalidOperation):
            knowledge.save_item("pregunta", "respuesta", "Inexistente")
        item = knowledge.save_item("  ¿Hacen envíos gratis?  ", "Desde $30.000.", "Envíos", item=self.shipping)
        self.assertEqual(item.pk, self.shipping.pk)
        self.assertEqual(item.question, "¿Hacen envíos gratis?")

    def test_search(self):
        self.assertEqual(list(knowledge.search("transferencia")), [self.payments])
        self.assertEqual(list(knowledge.search("", "Envíos")), [self.shipping])
        self.assertEqual(knowledge.search().count(), 2)

    def test_system_prompt_includes_items(self):
        prompt = knowledge.build_system_prompt()
        self.assertIn("[Envíos]\nP: ¿Hacen envíos?\nR: Sí, a todo el país.", prompt)
        self.assertIn("Sin información cargada.", knowledge.build_system_prompt([]))

    def test_export_training_jsonl(self):
        lines = knowledge.export_training_jsonl().splitlines()
        self.assertEqual(len(lines), 2)
        example = json.loads(lines[0])
        roles = [m["role"] for m in example["messages"]]
        self.assertEqual(roles, ["system", "user", "assistant"])
        self.assertEqual(knowledge.export_training_jsonl([]), "")

    @override_settings(OPENAI_API_KEY="")
    def test_assistant_requires_api_key(self):
        with self.assertRaises(StorefrontError) as ctx:
            knowledge.ask_assistant("Hola")
        self.assertEqual(ctx.exception.code, "assistant_config")

    @override_settings(OPENAI_API_KEY="sk-test", OPENAI_MODEL="gpt-4o-mini")
    def test_assistant_sends_knowledge_and_history(self):
        body = json.dumps({"choices": [{"message": {"content": "Sí, enviamos a todo el país."}}]}).encode("utf-8")
        history = [{"role": "user", "content": "Hola"}, {"role": "assistant", "content": "¡Hola!"}]
        with patch("storefront.knowledge.urlopen") as urlopen:
            urlopen.return_value.__enter__.return_value.read.return_value = body
            reply = knowledge.ask_assistant("¿Hacen envíos?", history)
        self.assertEqual(reply, "Sí, enviamos a todo el país.")
        request = urlopen.call_args[0][0]
        self.assertEqual(request.get_header("Authorization"), "Bearer sk-test")
        payload = json.loads(request.data.decode("utf-8"))
        self.assertEqual(payload["model"], "gpt-4o-mini")
        self.assertEqual(payload["messages"][0]["role"], "system")
        self.assertIn("Mercado Pago y transferencia.", payload["messages"][0]["content"])
        self.assertEqual(payload["messages"][1:3], history)
        self.assertEqual(payload["messages"][-1], {"role": "user", "content": "¿Hacen envíos?"})

    @override_settings(OPENAI_API_KEY="sk-test")
    def test_assistant_unavailable(self):
        with patch("storefront.knowledge.urlopen", side_effect=URLError("timeout")):
            with self.assertRaises(StorefrontError) as ctx:
                knowledge.ask_assistant("Hola")
        self.assertEqual(ctx.exception.code, "assistant_unavailable")

    def test_empty_message(self):
        with self.assertRaises(InvalidOperation):
            knowledge.ask_assistant("   ")
