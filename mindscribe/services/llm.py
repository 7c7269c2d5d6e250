# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Large Language Model service for clinical note generation."""
import logging
import time
from typing import Iterable, Optional

from openai import APIError, AsyncOpenAI

from mindscribe.deps import Settings
from mindscribe.exceptions import GenerationFailed
from mindscribe.models.api.notes_schema import NoteFields, NoteType, PatientContext
from mindscribe.services.note_parser import parse_note_content

logger = logging.getLogger(__name__)

SYSTEM_PROMPTS = {
    NoteType.SOAP: """You are a clinical psychologist assistant helping to generate SOAP notes (Subjective, Objective, Assessment, Plan) from therapy session transcripts.

Guidelines for SOAP notes:
- Subjective: Patient's reported symptoms, concerns, and subjective experience
- Objective: Observable facts, mental status exam findings, and clinical observations
- Assessment: Clinical interpretation, diagnosis, and progress evaluation
- Plan: Treatment plan, interventions, next steps, and homework assignments

Format your response as JSON with the following structure:
{
  "subjective": "...",
  "objective": "...",
  "assessment": "...",
  "plan": "..."
}

Be concise, professional, and focus on clinically relevant information. Use proper medical terminology.""",
    NoteType.DARE: """You are a clinical psychologist assistant helping to generate DARE notes (Description, Action, Response, Evaluation) from therapy session transcripts.

Guidelines for DARE notes:
- Description: Describe what happened during the session
- Action: What actions or interventions were taken by the therapist
- Response: How the client responded to the interventions
- Evaluation: Evaluation of the session and next steps

Format your response as JSON with the following structure:
{
  "description": "...",
  "action": "...",
  "response": "...",
  "evaluation": "..."
}

Be concise, professional, and focus on clinically relevant information. Use proper medical terminology.""",
}


def format_transcript(segments: Iterable) -> str:
    """Flatten ordered segments into "Therapist: ..." / "Client: ..." turns."""
    return "\n\n".join(
        f"{'Therapist' if segment.speaker == 'therapist' else 'Client'}: {segment.text}"
        for segment in segments
    )


def build_user_prompt(
    transcript_text: str, note_type: NoteType, patient_context: Optional[PatientContext]
) -> str:
    """Build the user message holding patient context and the transcript."""
    label = note_type.value.upper()
    prompt = (
        f"Please analyze the following therapy session transcript and generate a {label} note.\n\n"
    )

    if patient_context:
        prompt += f"Patient: {patient_context.name}\n"
        if patient_context.history:
            prompt += f"Patient History: {patient_context.history}\n"
        prompt += "\n"

    prompt += f"Session Transcript:\n{transcript_text}\n\n"
    prompt += f"Generate a detailed {label} note based on this session."
    return prompt


class NoteGenerator:
    """Generates structured clinical notes through an OpenAI-compatible chat API."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str = "deepseek-chat",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "NoteGenerator":
        return cls(
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of the OpenAI-compatible client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def generate_note(
        self,
        transcript_text: str,
        note_type: NoteType,
        patient_context: Optional[PatientContext] = None,
    ) -> NoteFields:
        """
        Generate a structured note from a flattened transcript.

        Args:
            transcript_text: "Speaker: text" turns separated by blank lines
            note_type: SOAP or DARE
            patient_context: Patient name and optional history

        Returns:
            NoteFields with the four fields of ``note_type``

        Raises:
            GenerationFailed: Empty transcript, provider error or no usable content
        """
        if not transcript_text or not transcript_text.strip():
            raise GenerationFailed("Cannot generate a note from an empty transcript")

        started = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPTS[note_type]},
                    {
                        "role": "user",
                        "content": build_user_prompt(transcript_text, note_type, patient_context),
                    },
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APIError as e:
            logger.error(f"Note generation request failed: {e}")
            raise GenerationFailed(f"DeepSeek API error: {e}", provider_message=str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationFailed("No content returned from DeepSeek API")

        fields = parse_note_content(content, note_type)
        if not any(fields.for_type(note_type).values()):
            raise GenerationFailed(
                "DeepSeek response contained no recognizable note sections",
                provider_message=content[:500],
            )

        logger.info(
            f"Generated {note_type.value.upper()} note in {time.monotonic() - started:.2f}s "
            f"({len(transcript_text.split())} transcript words)"
        )
        return fields
