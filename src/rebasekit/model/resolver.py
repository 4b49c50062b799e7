"""Conflict resolution model using a pydantic-AI agent."""

import json
import re
import time
import traceback
from contextlib import contextmanager

from pydantic_ai import Agent, providers
from pydantic_ai.models import Model

from rebasekit.core.config import LLMConfig
from rebasekit.core.log import logger
from rebasekit.resolution.models import ConflictAnalysis

DEFAULT_PROMPTS = {
    'system': (
        "You are an expert software engineer resolving git merge "
        "conflicts. Output only file content, never commentary."
    ),
    'resolve': (
        "Resolve the merge conflict in `{file_path}` ({language}).\n\n"
        "Current branch: {current_branch}\n"
        "Incoming branch: {incoming_branch}\n\n"
        "Conflicted file content:\n\n{conflicted_content}\n\n{directive}\n"
    ),
    'directive': (
        "Resolve this conflict and output ONLY the final merged code. "
        "No explanations."
    ),
    'retry_directive': (
        "CRITICAL: You MUST remove ALL conflict markers (<<<<<<<, =======, "
        ">>>>>>>) and produce clean, merged code. Output ONLY the "
        "resolved code."
    ),
    'analyze': (
        "Analyze the merge conflict in `{file_path}`.\n\n"
        "{conflicted_content}\n\n"
        "Respond with ONLY a JSON object with the keys "
        "currentBranchIntent, incomingBranchIntent, conflictType, "
        "recommendedStrategy, explanation and complexity.\n"
    ),
}

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


@contextmanager
def inject_provider_params(llm_config: LLMConfig):
    """Context manager to inject parameters into provider creation.

    Temporarily patches pydantic-AI's infer_provider to pass
    custom parameters to provider constructors. Restores original
    behavior on exit.

    Args:
        llm_config: LLM configuration with api_key, base_url, etc.
    """
    kwargs = {}
    if llm_config.api_key:
        kwargs['api_key'] = llm_config.api_key
    if llm_config.base_url:
        kwargs['base_url'] = llm_config.base_url

    if not kwargs:
        yield
        return

    original_infer_provider = providers.infer_provider

    def patched_infer_provider(provider_name: str):
        provider_class = providers.infer_provider_class(provider_name)
        return provider_class(**kwargs)

    try:
        providers.infer_provider = patched_infer_provider
        yield
    finally:
        providers.infer_provider = original_infer_provider


def parse_analysis(text: str) -> ConflictAnalysis:
    """Extract the JSON object from a model reply and validate it.

    Raises:
        ValueError: If the reply has no JSON object or it does not
            match ConflictAnalysis
    """
    match = _JSON_BLOCK.search(text)
    if not match:
        raise ValueError("No JSON object in analysis response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in analysis response: {e}") from e
    # pydantic's ValidationError is a ValueError
    return ConflictAnalysis.model_validate(data)


class ConflictModel:
    """Asks an LLM to resolve or analyze one conflicted file.

    Failures of any kind (provider misconfiguration, network errors,
    empty replies) are logged and reported as None; callers decide
    what a missing answer means.
    """

    def __init__(
        self,
        llm_config: LLMConfig,
        prompts: dict[str, str] | None = None,
        model: Model | None = None,
    ):
        """Initialize with LLM configuration.

        Args:
            llm_config: Model name, credentials and retry settings
            prompts: The 'resolver' prompt section from config; keys
                missing here fall back to DEFAULT_PROMPTS
            model: Concrete pydantic-AI model to use instead of
                llm_config.model
        """
        self.llm_config = llm_config
        self.prompts = {**DEFAULT_PROMPTS, **(prompts or {})}
        self.model = model

    @property
    def directive(self) -> str:
        return self.prompts['directive']

    @property
    def retry_directive(self) -> str:
        return self.prompts['retry_directive']

    @property
    def model_name(self) -> str:
        if self.model is not None:
            return self.model.model_name
        return self.llm_config.model

    def _create_agent(self) -> Agent:
        with inject_provider_params(self.llm_config):
            return Agent(
                self.model or self.llm_config.model,
                output_type=str,
                system_prompt=self.prompts['system'],
                retries=self.llm_config.retries,
            )

    def _log_failure(self, purpose: str, file_path: str, e: Exception):
        logger.error(
            f"LLM {purpose} call failed for {file_path}",
            _exc_info=e,
            file=file_path,
            model=self.model_name,
        )
        tb_lines = traceback.format_exception(type(e), e, e.__traceback__)
        logger.debug(
            "Exception traceback",
            traceback=''.join(tb_lines),
        )
        cause = e.__cause__
        depth = 1
        while cause:
            logger.debug(
                f"Exception cause chain (depth {depth}): {type(cause)}",
                cause=str(cause),
            )
            cause = cause.__cause__
            depth += 1

    async def _ask(self, purpose: str, file_path: str, prompt: str):
        logger.debug(
            f"Sending {purpose} prompt for {file_path}",
            file=file_path,
            model=self.model_name,
            prompt_length=len(prompt),
            base_url=self.llm_config.base_url,
            api_key_provided=self.llm_config.api_key is not None,
        )
        logger.trace("Prompt", file=file_path, prompt=prompt)

        started = time.monotonic()
        try:
            agent = self._create_agent()
            result = await agent.run(prompt)
        except Exception as e:
            self._log_failure(purpose, file_path, e)
            return None

        output = result.output
        logger.debug(
            f"LLM {purpose} call completed for {file_path}",
            file=file_path,
            elapsed=round(time.monotonic() - started, 3),
            output_length=len(output or ""),
            message_count=len(result.all_messages()),
        )
        if not output or not output.strip():
            logger.warn(
                f"LLM returned an empty {purpose} response for {file_path}",
                file=file_path,
            )
            return None
        return output

    async def resolve(
        self,
        file_path: str,
        language: str,
        current_branch: str,
        incoming_branch: str,
        conflicted_content: str,
        directive: str,
    ) -> str | None:
        """Ask for the fully merged content of a conflicted file.

        Returns:
            The raw model reply (possibly fenced), or None on failure
        """
        prompt = self.prompts['resolve'].format(
            file_path=file_path,
            language=language,
            current_branch=current_branch,
            incoming_branch=incoming_branch,
            conflicted_content=conflicted_content,
            directive=directive,
        )
        return await self._ask("resolve", file_path, prompt)

    async def analyze(
        self, file_path: str, conflicted_content: str
    ) -> str | None:
        """Ask for a structured explanation of a conflict."""
        prompt = self.prompts['analyze'].format(
            file_path=file_path,
            conflicted_content=conflicted_content,
        )
        return await self._ask("analyze", file_path, prompt)
