import json
import logging
import typing

import pydantic
import requests

from hospital_training.models.module_models import GeneratedQuizModel, ModuleModel, QuestionModel

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

CHATBOT_MODEL = "gemini-2.0-flash"

QUIZ_QUESTION_COUNT = 5


class ChatBotApiError(Exception):
    def __init__(self, msg: str, status_code: int = 503) -> None:
        super().__init__(msg)
        self.status_code = status_code


_QUIZ_GENERATION_PROMPT_TEMPLATE = """
You are an expert in hospital quality assurance training. Create a multiple-choice quiz with
{question_count} difficult questions for a hospital quality assurance training module.

### Training Module

**Module Title:** {title}

**Module Description:** {description}

**Key Topics:** {topics}

### Instructions

The target audience is medical professionals. The questions should test comprehension of safety
protocols and quality standards. Each question must have exactly 4 options and exactly one correct
answer.

Please provide the quiz in a strict JSON format with the following structure and keys (use camelCase for keys).
For example:

```
{{
    "questions": [
        {{
            "id": "q1",
            "text": "The question text",
            "options": ["Option A", "Option B", "Option C", "Option D"],
            "correctAnswerIndex": 1
        }}
    ]
}}
```

`correctAnswerIndex` is the 0-based index of the correct answer in `options`.

IMPORTANT: Respond ONLY with the valid JSON object as described. Do not include
any other text, greetings, or conversational filler before or after the JSON.
"""


class ChatBotWrapper:
    def __init__(self) -> None:
        pass

    def _call_google_generative_api(
        self,
        *,
        chatbot_api_key: str,
        prompt: str,
        timeout_seconds: int = 45,
        max_output_tokens: int = 2048,
    ) -> dict:
        """
        Helper method to make the POST request to Google's Generative AI content generation.
        Handles common request setup and error handling.
        """
        api_endpoint = f"https://generativelanguage.googleapis.com/v1beta/models/{CHATBOT_MODEL}:generateContent?key={chatbot_api_key}"
        request_payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_output_tokens, "temperature": 0.3},
        }

        try:
            response = requests.post(api_endpoint, json=request_payload, timeout=timeout_seconds)
            response.raise_for_status()
            api_response_data = response.json()

            candidates = api_response_data.get("candidates")
            if not isinstance(candidates, list) or len(candidates) == 0 or not candidates[0].get("content"):
                _LOGGER.error("Invalid or missing candidates/content in GenAI API response: %s", api_response_data)
                raise ChatBotApiError("AI service returned an unexpected response structure (no candidates/content).")

            parts = candidates[0]["content"].get("parts")
            if not isinstance(parts, list) or len(parts) == 0 or not parts[0].get("text"):
                _LOGGER.error("Invalid or missing parts/text in GenAI API response: %s", api_response_data)
                raise ChatBotApiError("AI service returned an unexpected response structure (no parts/text).")

            generated_text = str(parts[0]["text"])
            _LOGGER.info(f"Raw GenAI response text (first 500 chars): {generated_text[:500]}")

            try:
                json_start = generated_text.find("{")
                json_end = generated_text.rfind("}")
                if json_start != -1 and json_end != -1 and json_end > json_start:
                    json_str = generated_text[json_start : json_end + 1]
                    return json.loads(json_str)
                else:
                    return json.loads(generated_text)
            except json.JSONDecodeError as json_e:
                _LOGGER.error(f"Failed to parse. Error: {json_e}. Text: {generated_text}", exc_info=True)
                raise ChatBotApiError(f"AI returned non-JSON response. Content: {generated_text[:500]}")

        except requests.exceptions.Timeout:
            _LOGGER.error("Google GenAI API request timed out.")
            raise ChatBotApiError("AI service request timed out.", 504)
        except requests.exceptions.RequestException as e:
            _LOGGER.error(f"Google GenAI API request failed: {e}")
            if e.response is not None:
                _LOGGER.error(f"GenAI API Error Response: {e.response.text}")
            raise ChatBotApiError(f"Failed to communicate with AI service: {str(e)}")
        except ValueError as e:
            _LOGGER.error(f"ValueError during AI call or response processing: {e}", exc_info=True)
            raise ChatBotApiError(f"ValueError during AI call or response processing: {str(e)}")

    def generate_quiz_prompt(self, module: ModuleModel, question_count: int = QUIZ_QUESTION_COUNT) -> str:
        return _QUIZ_GENERATION_PROMPT_TEMPLATE.format(
            question_count=question_count,
            title=module.title,
            description=module.description or "Not provided.",
            topics=", ".join(module.topics) if module.topics else "Not provided.",
        )

    def call_quiz_generation_api(
        self,
        *,
        chatbot_api_key: str,
        module: ModuleModel,
    ) -> list[QuestionModel]:
        """
        :raises ChatBotApiError: on transport failures or a response that is not a usable quiz
        """
        prompt = self.generate_quiz_prompt(module)
        generated_dict = self._call_google_generative_api(
            chatbot_api_key=chatbot_api_key,
            prompt=prompt,
            timeout_seconds=60,
        )

        raw_questions = generated_dict.get("questions")
        if not isinstance(raw_questions, list):
            raise ChatBotApiError("AI response has no 'questions' list.")

        # Ids are only needed to key answers, so missing ones are filled in deterministically
        for position, raw_question in enumerate(raw_questions, start=1):
            if isinstance(raw_question, dict) and not raw_question.get("id"):
                raw_question["id"] = f"q_gen_{module.id}_{position}"

        try:
            quiz = GeneratedQuizModel.model_validate({"questions": raw_questions})
        except pydantic.ValidationError as e:
            _LOGGER.error(f"Error parsing API response: {e}. Raw data: {generated_dict}", exc_info=True)
            raise ChatBotApiError(f"Invalid or unexpected quiz structure from AI: {str(e)}")

        if not quiz.questions:
            raise ChatBotApiError("AI returned an empty quiz.")

        _LOGGER.info(f"Generated {len(quiz.questions)} questions for module {module.id}.")
        return quiz.questions
