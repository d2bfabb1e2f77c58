"""Source Variant Resolver — revision → SourceVariant, and a ready working copy.

Classification is a pure function over the ordered rule table: the first
matching rule wins, so every revision maps to exactly one variant. Rules
flagged ``requires_confirmation`` ask the operator before anything on disk
is touched; declining raises ``OperationCancelled``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from relman.config import ManagerConfig
from relman.contrib.prompts import Prompter
from relman.core.errors import OperationCancelled, ResolutionError
from relman.core.filesystem import ensure_owned_directory
from relman.core.git import GitRepository
from relman.core.runner import CommandRunner
from relman.models.outcomes import StepResult
from relman.models.variants import Classification, ClassificationRule, MatchMode, SourceVariant

logger = logging.getLogger(__name__)


def classify_revision(revision: str, rules: Sequence[ClassificationRule]) -> Classification:
    """Return the classification of *revision* under the first matching rule."""
    for rule in rules:
        if rule.matches(revision):
            return Classification(
                revision=revision,
                kind=rule.kind,
                requires_confirmation=rule.requires_confirmation,
                rule=rule,
            )
    raise ResolutionError(f"No classification rule matches {revision!r}")


class SourceResolver:
    """Picks the source variant for a revision and prepares its working copy.

    Parameters
    ----------
    config:
        The process configuration (variants and classification table).
    runner:
        Backend for git and privileged filesystem commands.
    prompter:
        Operator decision port for ambiguous classifications.
    """

    def __init__(self, config: ManagerConfig, runner: CommandRunner, prompter: Prompter) -> None:
        self._config = config
        self._runner = runner
        self._prompter = prompter

    def classify(self, revision: str) -> Classification:
        return classify_revision(revision, self._config.classification_rules)

    def resolve(self, revision: str) -> SourceVariant:
        """Classify *revision*, confirming with the operator where required."""
        classification = self.classify(revision)
        variant = self._config.variant_for(classification.kind)
        rule = classification.rule

        if not classification.requires_confirmation:
            logger.info(
                "Revision %r matches %s %r: building %s from %s",
                revision, rule.match.value, rule.token, variant.name, variant.working_copy,
            )
            return variant

        if rule.token:
            reason = f"starts with {rule.token!r}" if rule.match == MatchMode.PREFIX else f"ends with {rule.token!r}"
        else:
            reason = "matches no fork naming convention"
        question = (
            f"Revision {revision!r} {reason}, which suggests the {variant.name} client. "
            f"Build {variant.name} from {variant.working_copy}?"
        )
        if not self._prompter.confirm(question, default=False):
            raise OperationCancelled(
                f"Build of {revision!r} from {variant.name} cancelled by operator.",
                step="resolve",
            )
        logger.info("Confirmed: building %r from %s", revision, variant.name)
        return variant

    def variant_named(self, name: str) -> SourceVariant:
        variant = self._config.variant_named(name)
        if variant is None:
            valid = ", ".join(v.name for v in self._config.variants)
            raise ResolutionError(f"Unknown variant {name!r}. Valid variants: {valid}")
        return variant

    def prepare_working_copy(self, variant: SourceVariant) -> tuple[GitRepository, list[StepResult]]:
        """Clone the variant if missing, otherwise normalize ownership; then fetch."""
        repo = GitRepository(variant.working_copy, self._runner)
        steps: list[StepResult] = []

        if not repo.exists:
            logger.info("Working copy %s is missing; cloning %s", variant.working_copy, variant.repository_url)
            steps.append(
                ensure_owned_directory(
                    variant.working_copy, runner=self._runner, use_sudo=self._config.use_sudo
                )
            )
            cloned = repo.clone(variant.repository_url)
            if not cloned.ok:
                raise ResolutionError(
                    f"Failed to clone {variant.repository_url} into {variant.working_copy} "
                    f"(exit {cloned.returncode})"
                )
            steps.append(StepResult.success("clone", f"cloned {variant.repository_url}"))
        else:
            steps.append(
                ensure_owned_directory(
                    variant.working_copy, runner=self._runner, use_sudo=self._config.use_sudo
                )
            )

        fetched = repo.fetch()
        if not fetched.ok:
            raise ResolutionError(
                f"Failed to fetch updates for {variant.working_copy} (exit {fetched.returncode})"
            )
        steps.append(StepResult.success("fetch"))
        return repo, steps
