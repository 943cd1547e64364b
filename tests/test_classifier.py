import asyncio

from fakes import ScriptedLLMClient, build_understanding
from xeyla.core.classifier import IntentClassifier


def _classify(answer, message: str = "beli cilok 2k") -> str:
    classifier = IntentClassifier(build_understanding(ScriptedLLMClient(classify=answer)))
    return asyncio.run(classifier.classify(message))


def test_classifier_reads_json_domain() -> None:
    assert _classify("{\"domain\": \"finance\"}") == "finance"
    assert _classify("```json\n{\"domain\": \"schedule\"}\n```") == "schedule"


def test_classifier_accepts_bare_word() -> None:
    assert _classify("Finance") == "finance"
    assert _classify("\"finance\"") == "finance"


def test_classifier_falls_back_to_schedule() -> None:
    assert _classify("{\"domain\": \"weather\"}") == "schedule"
    assert _classify("I am not sure") == "schedule"
    assert _classify(RuntimeError("offline")) == "schedule"


def test_classifier_without_client_defaults_to_schedule() -> None:
    classifier = IntentClassifier(build_understanding(None))

    assert asyncio.run(classifier.classify("berapa saldo")) == "schedule"
