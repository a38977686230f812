import unittest
import json
from unittest.mock import MagicMock, patch

# Import the agents to be tested
from resumaker.agents.job_description_analysis_agent import AnalysisReply, JobDescriptionAnalysisAgent
from resumaker.agents.objective_generation_agent import ObjectiveGenerationAgent, ObjectiveReply
from resumaker.agents.responsibility_enhancement_agent import (
    EnhancementReply,
    FallbackReply,
    ResponsibilityEnhancementAgent,
)
from resumaker.core.errors import AiFlowError
from resumaker.core.gemini_client import GeminiClient
from resumaker.utils import clean_json_reply, parse_model_reply


class TestResumeAgents(unittest.TestCase):
    """Unit tests for the AI assistance agents."""

    @classmethod
    def setUpClass(cls):
        """Set up mock data that will be used across all tests."""
        cls.skills = "Python, SQL, AWS"
        cls.experience = "AI Engineer at S3CURA: Architected a system using AWS Lambda and DynamoDB."
        cls.strengths = "Ownership, Communication"
        cls.weaknesses = "Public speaking"
        cls.mock_job_description = "We are hiring an AI Engineer at Google. Must know Python, AWS, and Docker."

    def test_objective_generation_agent(self):
        """
        Tests that the objective agent returns the objective from a mocked
        structured reply.
        """
        # 1. Setup: Mock the Gemini client and its response
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.return_value = json.dumps({"objective": "AI Engineer who ships."})

        # 2. Execution: Run the agent
        agent = ObjectiveGenerationAgent(mock_gemini_client)
        result = agent.run(self.skills, self.experience, self.strengths, self.weaknesses)

        # 3. Assertion: Verify the output and the request
        self.assertEqual(result, "AI Engineer who ships.")
        prompt, schema = mock_gemini_client.generate_json.call_args.args
        self.assertIs(schema, ObjectiveReply)
        self.assertIn("Python, SQL, AWS", prompt)
        self.assertNotIn("specific job description", prompt)

    def test_objective_prompt_targets_job_analysis(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.return_value = '```json\n{"objective": "Targeted."}\n```'

        agent = ObjectiveGenerationAgent(mock_gemini_client)
        result = agent.run(self.skills, self.experience, self.strengths, self.weaknesses,
                           job_analysis="Emphasize Docker.")

        self.assertEqual(result, "Targeted.")
        self.assertIn("Emphasize Docker.", agent.last_prompt)
        self.assertIn("THIS particular job", agent.last_prompt)

    def test_objective_malformed_reply_raises(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.return_value = '{"summary": "wrong key"}'

        agent = ObjectiveGenerationAgent(mock_gemini_client)
        with self.assertRaises(AiFlowError):
            agent.run(self.skills, self.experience, self.strengths, self.weaknesses)
        # No retries on a malformed reply.
        mock_gemini_client.generate_json.assert_called_once()

    def test_objective_network_failure_raises(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.side_effect = ConnectionError("offline")

        agent = ObjectiveGenerationAgent(mock_gemini_client)
        with self.assertRaises(AiFlowError) as ctx:
            agent.run(self.skills, self.experience, self.strengths, self.weaknesses)
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)

    def test_job_description_analysis_agent(self):
        """
        Tests that the analysis agent returns the suggestions text from a
        mocked LLM response.
        """
        # 1. Setup
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.return_value = json.dumps(
            {"suggestions": "Add Docker to your skills."}
        )

        # 2. Execution
        agent = JobDescriptionAnalysisAgent(mock_gemini_client)
        result = agent.run(self.mock_job_description, "Skills: Python; Experience: AI Engineer at S3CURA")

        # 3. Assertion
        self.assertEqual(result, "Add Docker to your skills.")
        prompt, schema = mock_gemini_client.generate_json.call_args.args
        self.assertIs(schema, AnalysisReply)
        self.assertIn(self.mock_job_description, prompt)
        self.assertIn("AI Engineer at S3CURA", prompt)

    def test_job_description_analysis_empty_reply_raises(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.return_value = ""

        agent = JobDescriptionAnalysisAgent(mock_gemini_client)
        with self.assertRaises(AiFlowError):
            agent.run(self.mock_job_description, "Skills: Python")

    def test_responsibility_enhancement_agent(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.return_value = json.dumps({
            "suggested_responsibilities": ["Led A", "Drove B", "Shipped C", "Extra D"]
        })

        agent = ResponsibilityEnhancementAgent(mock_gemini_client)
        result = agent.run("Did things", role="Engineer", job_analysis_context="Mention scale.")

        self.assertEqual(result, ["Led A", "Drove B", "Shipped C"])
        prompt, schema = mock_gemini_client.generate_json.call_args.args
        self.assertIs(schema, EnhancementReply)
        self.assertIn("Job Role Context: Engineer", prompt)
        self.assertIn("Mention scale.", prompt)

    def test_responsibility_enhancement_falls_back_once(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.side_effect = [
            json.dumps({"suggested_responsibilities": []}),
            json.dumps({"suggestion": "Improved text"}),
        ]

        agent = ResponsibilityEnhancementAgent(mock_gemini_client)
        result = agent.run("Did things")

        self.assertEqual(result, ["Improved text"])
        self.assertEqual(mock_gemini_client.generate_json.call_count, 2)
        self.assertIs(mock_gemini_client.generate_json.call_args.args[1], FallbackReply)

    def test_responsibility_enhancement_returns_original_when_nothing_usable(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.side_effect = ["not json at all", json.dumps({"suggestion": "  "})]

        agent = ResponsibilityEnhancementAgent(mock_gemini_client)
        result = agent.run("Did things")

        self.assertEqual(result, ["Did things"])
        self.assertEqual(mock_gemini_client.generate_json.call_count, 2)

    def test_responsibility_enhancement_network_failure_raises(self):
        mock_gemini_client = MagicMock()
        mock_gemini_client.generate_json.side_effect = TimeoutError("slow")

        agent = ResponsibilityEnhancementAgent(mock_gemini_client)
        with self.assertRaises(AiFlowError):
            agent.run("Did things")


class TestReplyParsing(unittest.TestCase):

    def test_clean_json_reply_strips_fences(self):
        self.assertEqual(clean_json_reply('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(clean_json_reply(None), "")

    def test_parse_model_reply_rejects_wrong_shape(self):
        with self.assertRaises(AiFlowError):
            parse_model_reply('{"objective": 42}', ObjectiveReply)


class TestGeminiClient(unittest.TestCase):

    @patch("resumaker.core.gemini_client.genai.Client")
    def test_generate_json_requests_schema_constrained_reply(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = MagicMock(text='{"objective": "x"}')
        client = GeminiClient(api_key="key", model_name="gemini-test")

        reply = client.generate_json("prompt", ObjectiveReply)

        self.assertEqual(reply, '{"objective": "x"}')
        kwargs = client_cls.return_value.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-test")
        self.assertEqual(kwargs["config"].response_mime_type, "application/json")
        self.assertFalse(hasattr(client, "generate_text"))

    @patch("resumaker.core.gemini_client.genai.Client")
    def test_blocked_reply_is_empty(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = MagicMock(text=None)
        self.assertEqual(GeminiClient(api_key="key").generate_json("prompt", ObjectiveReply), "")

    def test_api_key_is_required(self):
        with self.assertRaises(ValueError):
            GeminiClient(api_key="")


if __name__ == '__main__':
    unittest.main()
