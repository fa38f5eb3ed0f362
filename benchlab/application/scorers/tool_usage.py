from ...domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract


class ToolUsageScorer(ScorerContract):
    @property
    def name(self) -> str:
        return "tool-usage"

    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        if not context.task.tools:
            return ScoreResult.unavailable(self.name, "no tools configured on task")

        expected_tool = context.task.tools[0].name
        tool_calls = context.result.tool_calls
        used_tool = any(tc.name == expected_tool for tc in tool_calls)

        return ScoreResult(
            name=self.name,
            value=1.0 if used_tool else 0.0,
            details={
                "expected_tool_name": expected_tool,
                "used_tool": used_tool,
                "tool_calls": [
                    {"name": tc.name, "arguments": tc.arguments} for tc in tool_calls
                ],
            },
        )
