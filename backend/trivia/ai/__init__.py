from .judge import AutoJudge, OpenAIJudge, create_judge

__all__ = ["AutoJudge", "OpenAIJudge", "create_judge"]
