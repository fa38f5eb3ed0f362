import json

from jsonschema import Draft202012Validator, SchemaError

from ...domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract


class SchemaCorrectnessScorer(ScorerContract):
    @property
    def name(self) -> str:
        return "schema-correctness"

    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        schema = context.task.output_schema
        if not schema:
            return ScoreResult.unavailable(self.name, "no schema defined")

        data = context.result.output
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                return ScoreResult(
                    name=self.name,
                    value=0.0,
                    details={"reason": "output is not valid JSON"},
                )

        try:
            Draft202012Validator.check_schema(schema)
        except SchemaError as e:
            return ScoreResult.unavailable(self.name, f"invalid schema: {e.message}")

        validator = Draft202012Validator(schema)
        errors = [e.message for e in validator.iter_errors(data)]

        if errors:
            return ScoreResult(
                name=self.name,
                value=0.0,
                details={"valid": False, "errors": errors},
            )
        return ScoreResult(name=self.name, value=1.0, details={"valid": True})
