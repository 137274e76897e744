"""Static guidance for the seven ReSafety steps and a drill-down navigator.

The tree is a flat mapping from topic title to :class:`GuidanceTopic`. A
substep entry is plain text, optionally ``"Label: description"``; when its
label is itself a title in the mapping the navigator can drill into it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuidanceTopic:
    title: str
    description: str = ""
    substeps: tuple[str, ...] = ()


def _topic(title: str, description: str, *substeps: str) -> tuple[str, GuidanceTopic]:
    return title, GuidanceTopic(title=title, description=description, substeps=substeps)


# ---------------------------------------------------------------------------
# Topic tree
# ---------------------------------------------------------------------------

_TOPICS: dict[str, GuidanceTopic] = dict(
    [
        # Step 1
        _topic(
            "Step 1",
            "Define the scope of the safety-critical system (SCS): what is analysed, why, "
            "and which losses are unacceptable.",
            "1.1 - Define General Concerns",
            "1.2 - Identify Accidents and Hazards",
            "1.3 - Define Safety Constraints",
            "1.4 - Allocate Responsibilities",
            "1.5 - Collect Resources and Artefacts (Optional)",
        ),
        _topic(
            "1.1 - Define General Concerns",
            "Agree on the purpose of the analysis and the boundary of the system before "
            "any hazard is written down.",
            "Identify Key Concepts: list the domain terms every stakeholder must read the same way.",
            "State the Analysis Purpose: certification evidence, design review or incident follow-up.",
            "Record Assumptions: operating environment, user population, regulatory baseline.",
            "System Boundary: separate the components you control from the environment you only observe.",
            "Analysis Objectives: one measurable objective per line, each with a priority.",
        ),
        _topic(
            "System Boundary",
            "The boundary decides which failures are design problems and which are environmental "
            "conditions the design must tolerate.",
            "Inside the boundary: components whose behaviour the team can change.",
            "Outside the boundary: actors and systems that only exchange signals with the SCS.",
            "Out of scope: items deliberately excluded, each with a short justification.",
        ),
        _topic(
            "Analysis Objectives",
            "Objectives keep the analysis finite. Each should name a focus and a priority.",
            "Focus: at least a short phrase naming what must be shown safe.",
            "Priority: High, Medium or Low; High objectives are analysed first.",
            "Rationale: why the objective matters to this project.",
        ),
        _topic(
            "1.2 - Identify Accidents and Hazards",
            "Accidents are unacceptable losses. Hazards are system states that, together with "
            "worst-case environmental conditions, lead to an accident.",
            "Accident Identification: describe each loss in terms of people, mission or assets (A1, A2, ...).",
            "Hazard Identification: describe each hazardous system state (H1, H2, ...).",
            "Link hazards to accidents: every hazard must trace to at least one accident.",
        ),
        _topic(
            "Accident Identification",
            "An accident is stated without reference to a cause.",
            "Good: A1 - Patient receives an insulin overdose.",
            "Avoid: causes such as 'pump software crashes' in the accident text.",
            "Keep the list short; five to ten accidents is typical.",
        ),
        _topic(
            "Hazard Identification",
            "A hazard is a system state under the designer's control.",
            "Phrase hazards as '<system> <unsafe condition>'.",
            "Link each hazard to the accidents it can lead to using their codes, for example 'A1, A2'.",
            "Refine a hazard into sub-hazards only when the controls differ.",
        ),
        _topic(
            "1.3 - Define Safety Constraints",
            "A safety constraint is the inverse of a hazard: the condition the system must "
            "enforce so the hazard never occurs.",
            "Write one constraint per hazard as a starting point (SC-01, SC-02, ...).",
            "Link each constraint to the hazards it prevents.",
            "Constraint Quality Checklist (Recommended): verifiable, unambiguous, free of design detail.",
        ),
        _topic(
            "Constraint Quality Checklist",
            "Review every safety constraint against these questions.",
            "Verifiable: can a test or review show the constraint holds?",
            "Unambiguous: would two engineers implement it the same way?",
            "Design-free: does it state what must hold rather than how?",
        ),
        _topic(
            "1.4 - Allocate Responsibilities",
            "Each safety constraint needs an owner among the system components.",
            "System Components: list controllers, actuators, sensors and controlled processes.",
            "Assign responsibilities: one row per component and constraint pair (R-01, R-02, ...).",
            "Check coverage: every constraint appears in at least one responsibility.",
        ),
        _topic(
            "System Components",
            "Components are the building blocks of the control structure in Step 3.",
            "Human controllers: operators, clinicians, maintainers.",
            "Automated controllers: firmware, apps, cloud services.",
            "Controlled processes: the physical process being controlled.",
        ),
        _topic(
            "1.5 - Collect Resources and Artefacts",
            "Gather the documents and models the analysis will rely on.",
            "Resources: standards, regulations and domain references with their source type.",
            "Artefacts: requirement specs, architecture diagrams and previous hazard logs.",
        ),
        # Step 2
        _topic(
            "Step 2",
            "Build iStar4Safety goal models that show which actors pursue which goals and "
            "where safety goals depend on other actors.",
            "2.1 - Identify Actors",
            "2.2 - Model Goals and Dependencies",
            "2.3 - Attach Safety Goals",
            "2.4 - Validate the Model (Optional)",
        ),
        _topic(
            "2.1 - Identify Actors",
            "Actors are the agents and roles whose intentions matter for safety.",
            "Actor Types: human, organisational or system.",
            "Responsibilities: carry over the Step 1 responsibilities as actor goals.",
            "Boundary check: every actor inside the boundary maps to a system component.",
        ),
        _topic(
            "Actor Types",
            "Choose the type that matches who makes the decision.",
            "Human: a person acting in a role, such as the patient or clinician.",
            "Organisational: a team or company, such as the manufacturer.",
            "System: an automated agent, such as the pump controller.",
        ),
        _topic(
            "2.2 - Model Goals and Dependencies",
            "Connect actors to goals with typed links.",
            "achieves: the actor directly satisfies the goal.",
            "depends-on: the actor relies on another actor to satisfy the goal.",
            "obstructs: the goal works against another goal.",
            "satisfies: a task or resource fulfils a goal.",
        ),
        _topic(
            "2.3 - Attach Safety Goals",
            "Safety goals are derived from the Step 1 safety constraints.",
            "One safety goal per safety constraint, reusing its code.",
            "Hazard annotation: mark which hazard each safety goal mitigates.",
        ),
        _topic(
            "2.4 - Validate the Model",
            "Walk the model with domain experts before control-structure work begins.",
            "Every safety goal has an owning actor.",
            "No dependency points at an actor outside the boundary without a note.",
        ),
        # Step 3
        _topic(
            "Step 3",
            "Model the hierarchical control structure: controllers, the control actions they "
            "issue and the feedback they receive.",
            "3.1 - List Control Actions",
            "3.2 - Define Feedback Loops",
            "3.3 - Review the Control Structure (Recommended)",
        ),
        _topic(
            "3.1 - List Control Actions",
            "A control action is a command a controller issues to a controlled process.",
            "Controller: the issuing component from Step 1.",
            "Action: a verb phrase such as 'Deliver bolus'.",
            "Controlled process: the component that receives the action.",
            "Feedback: the signal that tells the controller the action took effect.",
        ),
        _topic(
            "3.2 - Define Feedback Loops",
            "Feedback closes the loop between a controlled process and its controller.",
            "Source and destination: the two components of the loop.",
            "Signal: what is measured or reported.",
            "Latency: how stale the feedback can be when it arrives.",
        ),
        _topic(
            "3.3 - Review the Control Structure",
            "Check the diagram for gaps before identifying unsafe control actions.",
            "Every controller has at least one control action.",
            "Every control action has a feedback path.",
            "Process model: note what each controller must believe about its process.",
        ),
        # Step 4
        _topic(
            "Step 4",
            "Identify unsafe control actions (UCAs): ways a control action can lead to a hazard.",
            "4.1 - Apply the Four UCA Categories",
            "4.2 - Link UCAs to Hazards",
        ),
        _topic(
            "4.1 - Apply the Four UCA Categories",
            "Examine every control action under each category.",
            "Not provided: the action is needed but not issued.",
            "Provided: the action is issued when it causes a hazard.",
            "Timing: the action is issued too early, too late or out of order.",
            "Duration: the action is stopped too soon or applied too long.",
        ),
        _topic(
            "4.2 - Link UCAs to Hazards",
            "Each UCA must name the hazards it can cause.",
            "Use hazard codes from Step 1, for example 'H1, H2'.",
            "A UCA with no linked hazard is either out of scope or a missing hazard.",
        ),
        # Step 5
        _topic(
            "Step 5",
            "Derive controller constraints that prevent each unsafe control action.",
            "5.1 - Write Controller Constraints",
            "5.2 - Choose Enforcement Mechanisms",
        ),
        _topic(
            "5.1 - Write Controller Constraints",
            "Invert each UCA into a constraint on its controller (CC-01, CC-02, ...).",
            "Reference the UCA codes the constraint addresses.",
            "State the constraint in at least a full sentence.",
            "Status: Draft until reviewed, then Approved.",
        ),
        _topic(
            "5.2 - Choose Enforcement Mechanisms",
            "Describe how the constraint is enforced at run time.",
            "Interlocks and limits in the controller.",
            "Alerts that hand control to a human.",
            "Procedures and training for human controllers.",
        ),
        # Step 6
        _topic(
            "Step 6",
            "Analyse loss scenarios that explain how UCAs occur and derive safety requirements "
            "that eliminate or mitigate them.",
            "6.1 - Build Loss Scenarios",
            "6.2 - Derive Safety Requirements",
            "6.3 - Plan Validation Tasks (Optional)",
        ),
        _topic(
            "6.1 - Build Loss Scenarios",
            "A loss scenario describes causal factors that lead to a UCA and then to a hazard.",
            "Link the UCA and hazard codes the scenario explains.",
            "Outcome: the resulting loss, in plain words.",
            "Severity: rate the outcome before proposing mitigations.",
            "Mitigations: candidate design or procedural changes.",
        ),
        _topic(
            "6.2 - Derive Safety Requirements",
            "Each requirement eliminates or mitigates one or more loss scenarios.",
            "Link scenario codes, for example 'LS-31'.",
            "Owner and due date: who implements it and by when.",
            "Status: draft, in-review or implemented.",
        ),
        _topic(
            "6.3 - Plan Validation Tasks",
            "Validation tasks show that a requirement was implemented correctly.",
            "One task per requirement is a reasonable minimum.",
            "Track tasks as todo, doing or done.",
        ),
        # Step 7
        _topic(
            "Step 7",
            "Update the iStar4Safety models with the changes the analysis produced and record "
            "the evidence that closes each finding.",
            "7.1 - Record Model Changes",
            "7.2 - Capture Integration Notes",
            "7.3 - Publish the Traceability Report",
        ),
        _topic(
            "7.1 - Record Model Changes",
            "Each change names the model area, the change itself and the findings that drove it.",
            "Drivers: UCA, scenario or requirement codes that motivated the change.",
            "Impact: what else in the model the change touches.",
            "Status: planned, in-progress or deployed, with evidence once deployed.",
        ),
        _topic(
            "7.2 - Capture Integration Notes",
            "Short notes from integration reviews, each with an author and date.",
            "Action items: one follow-up per line.",
        ),
        _topic(
            "7.3 - Publish the Traceability Report",
            "Close the analysis by checking every link from requirements back to accidents.",
            "Dangling references: codes that point at nothing must be fixed or removed.",
            "Untraced records: hazards without accidents and requirements without scenarios.",
            "Archive: store the report with the project evidence.",
        ),
    ]
)

GUIDANCE_TOPICS: Mapping[str, GuidanceTopic] = MappingProxyType(_TOPICS)

# Suffixes that decorate a substep label but are not part of its topic title.
_DECORATIVE_SUFFIX = re.compile(r"\s*\((?:optional|recommended|mandatory)\)\s*$", re.IGNORECASE)


def split_label(entry: str) -> tuple[str, str]:
    """Split a ``"Label: description"`` entry; entries without a colon have no description."""
    label, separator, description = entry.partition(":")
    if not separator:
        return entry.strip(), ""
    return label.strip(), description.strip()


def _clean_label(label: str) -> str:
    cleaned = label.strip()
    while True:
        stripped = _DECORATIVE_SUFFIX.sub("", cleaned)
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


def resolve_topic_key(label: str, topics: Mapping[str, GuidanceTopic] = GUIDANCE_TOPICS) -> str | None:
    """Return the title *label* drills into, or ``None`` for leaf text.

    The colon fallback is a heuristic: leaf text that contains a colon after a
    word that happens to be a title resolves to that title.
    """
    cleaned = _clean_label(label)
    if cleaned in topics:
        return cleaned
    head, separator, _ = cleaned.partition(":")
    if separator:
        head = _clean_label(head)
        if head in topics:
            return head
    return None


class GuidanceNavigator:
    """Open a topic, drill into substeps, and walk back out again."""

    def __init__(self, topics: Mapping[str, GuidanceTopic] = GUIDANCE_TOPICS) -> None:
        self.topics = topics
        self._current: GuidanceTopic | None = None
        self._back_stack: list[GuidanceTopic] = []

    @property
    def current(self) -> GuidanceTopic | None:
        return self._current

    @property
    def depth(self) -> int:
        return len(self._back_stack)

    @property
    def breadcrumbs(self) -> list[str]:
        if self._current is None:
            return []
        return [topic.title for topic in self._back_stack] + [self._current.title]

    def open(self, topic: GuidanceTopic | str) -> GuidanceTopic:
        """Show *topic* with an empty back stack.

        A title missing from the tree is shown as its own leaf detail.
        """
        if isinstance(topic, GuidanceTopic):
            detail = self.topics.get(topic.title, topic)
        else:
            detail = self.topics.get(topic) or GuidanceTopic(title=topic)
        self._back_stack.clear()
        self._current = detail
        return detail

    def drill_into(self, label: str) -> bool:
        """Descend into *label*; returns ``False`` when it is leaf content."""
        key = resolve_topic_key(label, self.topics)
        if key is None:
            logger.debug("no guidance topic for %r", label)
            return False
        if self._current is not None:
            self._back_stack.append(self._current)
        self._current = self.topics[key]
        return True

    def back(self) -> GuidanceTopic | None:
        if self._back_stack:
            self._current = self._back_stack.pop()
        else:
            self._current = None
        return self._current

    def close_all(self) -> None:
        self._back_stack.clear()
        self._current = None
