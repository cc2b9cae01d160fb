"""
Validate phase.

Runs the in-process rules, applies the auto-fixes for critical problems
that have a mechanical fix, and re-checks. Critical issues are reported
but never block the run.
"""

from ..core.models.errors import ConfigurationError
from ..core.models.page import PageRecord
from ..core.models.review import ValidationResult
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from ..validation.rules import AUTO_FIXES, RuleContext, run_rules


def build_rule_context(ctx: PipelineContext, page: PageRecord) -> RuleContext:
    try:
        pages = ctx.store.load_pages()
    except ConfigurationError:
        pages = []
    return RuleContext(
        page_path=page.path,
        entity_ids=set(ctx.store.entities()),
        page_ids={p.id for p in pages},
        page_paths={p.path for p in pages if p.path}
    )


def validate_content(content: str, rule_ctx: RuleContext) -> ValidationResult:
    """Check, auto-fix what can be fixed, and check again."""
    critical, _ = run_rules(content, rule_ctx)

    fixes_applied = []
    for issue in critical:
        fix = AUTO_FIXES.get(issue.rule)
        if fix is None:
            continue
        content, count = fix(content)
        if count:
            fixes_applied.append(f"{issue.rule} ({count})")

    critical, quality = run_rules(content, rule_ctx)
    return ValidationResult(
        critical=critical,
        quality=quality,
        fixes_applied=fixes_applied,
        content=content
    )


async def validate_phase(ctx: PipelineContext, page: PageRecord, content: str) -> ValidationResult:
    phase_logger.log("validate", "Running validation checks...")

    result = validate_content(content, build_rule_context(ctx, page))

    for fix in result.fixes_applied:
        phase_logger.log("validate", f"  fixed {fix}")
    for issue in result.critical:
        phase_logger.warn("validate", f"  x {issue.rule}: {issue.count} error(s)")
    for issue in result.quality:
        phase_logger.log("validate", f"  warn {issue.rule}: {issue.count} warning(s)")

    ctx.artifacts(page.id).write("validation-results.json", {
        "critical": [i.model_dump(mode="json") for i in result.critical],
        "quality": [i.model_dump(mode="json") for i in result.quality],
        "fixesApplied": result.fixes_applied,
    })
    phase_logger.log(
        "validate",
        f"Complete (critical: {len(result.critical)}, quality: {len(result.quality)})"
    )
    return result
