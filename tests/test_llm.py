# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from mindscribe.exceptions import GenerationFailed
from mindscribe.models.api import NoteType, PatientContext
from mindscribe.services.llm import NoteGenerator, build_user_prompt, format_transcript

TRANSCRIPT = "Therapist: How was your week?\n\nClient: Stressful, mostly work."


class FakeCompletions:
    def __init__(self, content=None, error=None) -> None:
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _generator(completions: FakeCompletions) -> NoteGenerator:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return NoteGenerator(api_key="test", base_url="https://llm.test/v1", client=client)


async def test_generate_soap_note_from_json() -> None:
    completions = FakeCompletions(
        content=json.dumps(
            {
                "subjective": "Reports work stress.",
                "objective": "Tense posture.",
                "assessment": "Adjustment stress.",
                "plan": "Practice boundary setting.",
            }
        )
    )
    generator = _generator(completions)

    fields = await generator.generate_note(
        TRANSCRIPT, NoteType.SOAP, PatientContext(name="Jordan Lee", history="Anxiety")
    )

    assert fields.subjective == "Reports work stress."
    assert fields.plan == "Practice boundary setting."

    call = completions.calls[0]
    assert call["model"] == "deepseek-chat"
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 2000
    system, user = call["messages"]
    assert system["role"] == "system"
    assert '"subjective"' in system["content"]
    assert "Patient: Jordan Lee" in user["content"]
    assert "Patient History: Anxiety" in user["content"]
    assert TRANSCRIPT in user["content"]


async def test_partial_sections_are_not_a_failure() -> None:
    completions = FakeCompletions(
        content="Subjective: Stressed.\nObjective: Calm.\nAssessment: Coping."
    )

    fields = await _generator(completions).generate_note(TRANSCRIPT, NoteType.SOAP)

    assert fields.assessment == "Coping."
    assert fields.plan == ""


async def test_empty_transcript_is_rejected_before_calling_provider() -> None:
    completions = FakeCompletions(content="{}")

    with pytest.raises(GenerationFailed):
        await _generator(completions).generate_note("   ", NoteType.SOAP)
    assert completions.calls == []


async def test_provider_error_becomes_generation_failed() -> None:
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://llm.test/v1"))
    completions = FakeCompletions(error=error)

    with pytest.raises(GenerationFailed):
        await _generator(completions).generate_note(TRANSCRIPT, NoteType.DARE)


async def test_empty_content_becomes_generation_failed() -> None:
    with pytest.raises(GenerationFailed):
        await _generator(FakeCompletions(content="")).generate_note(TRANSCRIPT, NoteType.SOAP)


async def test_unstructured_content_becomes_generation_failed() -> None:
    completions = FakeCompletions(content="I'm sorry, I cannot help with that.")

    with pytest.raises(GenerationFailed):
        await _generator(completions).generate_note(TRANSCRIPT, NoteType.SOAP)


def test_user_prompt_without_patient_context() -> None:
    prompt = build_user_prompt(TRANSCRIPT, NoteType.DARE, None)

    assert prompt.startswith("Please analyze the following therapy session transcript")
    assert "DARE note" in prompt
    assert "Patient:" not in prompt
    assert prompt.endswith("Generate a detailed DARE note based on this session.")


def test_format_transcript_labels_speakers() -> None:
    segments = [
        SimpleNamespace(speaker="therapist", text="How was your week?"),
        SimpleNamespace(speaker="client", text="Stressful, mostly work."),
    ]

    assert format_transcript(segments) == TRANSCRIPT
