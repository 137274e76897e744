"""Walkthrough content for a fresh workspace (insulin infusion pump example)."""

from __future__ import annotations

from typing import Any

from .catalog import CollectionKind

# Running counters the walkthrough starts from; ``next()`` pre-increments.
SEED_COUNTERS: dict[CollectionKind, int] = {
    CollectionKind.OBJECTIVES: 2,
    CollectionKind.RESOURCES: 4,
    CollectionKind.SYSTEM_COMPONENTS: 4,
    CollectionKind.ACCIDENTS: 2,
    CollectionKind.HAZARDS: 2,
    CollectionKind.SAFETY_CONSTRAINTS: 2,
    CollectionKind.RESPONSIBILITIES: 7,
    CollectionKind.ARTEFACTS: 2,
    CollectionKind.ACTORS: 4,
    CollectionKind.GOAL_LINKS: 4,
    CollectionKind.CONTROL_ACTIONS: 3,
    CollectionKind.UNSAFE_CONTROL_ACTIONS: 4,
    CollectionKind.CONTROLLER_CONSTRAINTS: 3,
}

SYSTEM_DEFINITION = (
    "The IIP is a safety-critical device that automates basal and bolus insulin delivery "
    "to support Type 1 Diabetes management."
)

_SEEDS: dict[CollectionKind, list[dict[str, Any]]] = {
    CollectionKind.OBJECTIVES: [
        {
            "id": 1,
            "focus": "Ensure the RESafety iteration clarifies scope for high-risk insulin delivery scenarios.",
            "stakeholder": "Safety Engineering Lead",
            "priority": "High",
        },
        {
            "id": 2,
            "focus": "Capture baseline data flows to align future iStar4Safety and STPA artefacts.",
            "stakeholder": "Systems Architect",
            "priority": "Medium",
        },
    ],
    CollectionKind.RESOURCES: [
        {
            "id": 1,
            "name": "Martinazzo (2022) - STPA of Insulin Pumps",
            "category": "Manual",
            "reference": "martinazzo-2022-stpa-insulin.pdf",
        },
        {"id": 2, "name": "Leveson & Thomas (2018)", "category": "Book", "reference": "Engineering a Safer World"},
        {
            "id": 3,
            "name": "Manufacturer user manual (Medtronic 780G)",
            "category": "Manual",
            "reference": "https://www.medtronic.com/us-manual",
        },
    ],
    CollectionKind.SYSTEM_COMPONENTS: [
        {
            "id": 1,
            "name": "Patient (Human Controller)",
            "description": "Configures infusion parameters and supervises therapy.",
        },
        {
            "id": 2,
            "name": "Insulin Pump",
            "description": "Executes basal/bolus delivery and enforces configuration constraints.",
        },
        {
            "id": 3,
            "name": "Infusion Set",
            "description": "Provides physical channel for insulin delivery; integrity is critical.",
        },
    ],
    CollectionKind.ACCIDENTS: [
        {"id": 1, "code": "A1", "description": "Risk of death due to insulin mismanagement."},
        {"id": 2, "code": "A2", "description": "Risk of serious injury caused by inadequate insulin delivery."},
    ],
    CollectionKind.HAZARDS: [
        {
            "id": 1,
            "code": "H1",
            "description": "Hypoglycemia triggered by over-infusion or unintended dosing.",
            "linked_accidents": ["A1", "A2"],
        },
        {
            "id": 2,
            "code": "H2",
            "description": "Hyperglycemia caused by missed or delayed insulin delivery.",
            "linked_accidents": ["A2"],
        },
    ],
    CollectionKind.SAFETY_CONSTRAINTS: [
        {
            "id": 1,
            "code": "SC-01",
            "statement": (
                "The system must not administer insulin beyond validated dosage schedules "
                "or in unintended contexts."
            ),
            "linked_hazards": ["H1"],
        },
        {
            "id": 2,
            "code": "SC-02",
            "statement": "The system must assure the correct insulin dose is delivered at the intended time.",
            "linked_hazards": ["H2"],
        },
    ],
    CollectionKind.RESPONSIBILITIES: [
        {
            "id": 1,
            "code": "R-01",
            "component": "Patient (Human Controller)",
            "responsibility": "Configure infusion settings in accordance with the medical prescription.",
            "linked_constraints": ["SC-01", "SC-02"],
        },
        {
            "id": 2,
            "code": "R-02",
            "component": "Insulin Pump",
            "responsibility": (
                "Administer insulin only according to validated parameters and block unauthorised dosages."
            ),
            "linked_constraints": ["SC-01"],
        },
        {
            "id": 3,
            "code": "R-03",
            "component": "Insulin Pump",
            "responsibility": (
                "Monitor timing and quantity of delivery to confirm the correct dose is given on schedule."
            ),
            "linked_constraints": ["SC-02"],
        },
        {
            "id": 4,
            "code": "R-04",
            "component": "Insulin Pump",
            "responsibility": "Detect anomalies such as occlusions or over-delivery and alert the user immediately.",
            "linked_constraints": ["SC-01", "SC-02"],
        },
        {
            "id": 5,
            "code": "R-05",
            "component": "Infusion Set",
            "responsibility": "Maintain physical integrity to prevent leaks or unintended flow.",
            "linked_constraints": ["SC-01"],
        },
        {
            "id": 6,
            "code": "R-06",
            "component": "Infusion Set",
            "responsibility": "Ensure timely delivery of insulin from pump to patient.",
            "linked_constraints": ["SC-02"],
        },
        {
            "id": 7,
            "code": "R-07",
            "component": "Patient (Human Body)",
            "responsibility": "Respond physiologically to insulin as expected within treatment tolerance.",
            "linked_constraints": ["SC-02"],
        },
    ],
    CollectionKind.ARTEFACTS: [
        {
            "id": 1,
            "name": "Insulin pump clinical effectiveness dossier",
            "purpose": "Validates the necessity of safety constraints and responsibilities.",
            "reference": "internal-sharepoint://clinical/insulin-dossier",
        },
    ],
    CollectionKind.ACTORS: [
        {
            "id": 1,
            "name": "Infusion Controller",
            "type": "Controller",
            "responsibilities": [
                "Deliver basal rate",
                "Validate configuration download",
                "Monitor pump telemetry",
            ],
        },
        {
            "id": 2,
            "name": "Human Caregiver",
            "type": "Stakeholder",
            "responsibilities": [
                "Approve regimen updates",
                "Respond to abnormal alerts",
                "Provide patient context",
            ],
        },
        {
            "id": 3,
            "name": "Device Sensors",
            "type": "Sensor",
            "responsibilities": [
                "Report reservoir levels",
                "Detect occlusions",
                "Measure ambient temperature",
            ],
        },
    ],
    CollectionKind.GOAL_LINKS: [
        {
            "id": 1,
            "from_actor": "Infusion Controller",
            "goal": "Maintain commanded basal insulin delivery",
            "link_type": "achieves",
        },
        {"id": 2, "from_actor": "Human Caregiver", "goal": "Approve configuration change", "link_type": "depends-on"},
        {
            "id": 3,
            "from_actor": "Device Sensors",
            "goal": "Obstruct hazard: undetected occlusion",
            "link_type": "obstructs",
        },
    ],
    CollectionKind.CONTROL_ACTIONS: [
        {
            "id": 1,
            "code": "CA-01",
            "controller": "Infusion Controller",
            "action": "Set basal rate",
            "controlled_process": "Insulin Pump Mechanism",
            "feedback": "Reservoir level, flow sensor",
        },
        {
            "id": 2,
            "code": "CA-02",
            "controller": "Caregiver Portal",
            "action": "Approve regimen update",
            "controlled_process": "Regimen Configuration Service",
            "feedback": "Audit log confirmation",
        },
        {
            "id": 3,
            "code": "CA-03",
            "controller": "Cloud Update Service",
            "action": "Deploy firmware patch",
            "controlled_process": "Device Firmware Manager",
            "feedback": "Checksum telemetry",
        },
    ],
    CollectionKind.FEEDBACK_LOOPS: [
        {
            "id": 1,
            "code": "FB-01",
            "source": "Pump Sensors",
            "destination": "Infusion Controller",
            "signal": "Flow rate & occlusion alarms",
            "latency": "< 250 ms",
        },
        {
            "id": 2,
            "code": "FB-02",
            "source": "Infusion Controller",
            "destination": "Caregiver Portal",
            "signal": "Alert notifications via MQTT",
            "latency": "< 5 min",
        },
        {
            "id": 3,
            "code": "FB-03",
            "source": "Patient Mobile App",
            "destination": "Caregiver Portal",
            "signal": "Manual override confirmation",
            "latency": "Realtime",
        },
    ],
    CollectionKind.UNSAFE_CONTROL_ACTIONS: [
        {
            "id": 1,
            "code": "UCA-01",
            "controller": "Control Application",
            "control_action": "Release insulin delivery",
            "hazard": "Control application releases insulin when glucose level is low",
            "linked_hazards": ["H1"],
            "category": "Provided incorrectly",
        },
        {
            "id": 2,
            "code": "UCA-02",
            "controller": "Continuous Glucose Monitor",
            "control_action": "Provide glucose reading",
            "hazard": "CGM does not provide a measure when glucose level is high",
            "linked_hazards": ["H2"],
            "category": "Not provided",
        },
        {
            "id": 3,
            "code": "UCA-03",
            "controller": "Insulin Pump",
            "control_action": "Deliver insulin bolus",
            "hazard": "Pump delivers insulin with a delayed response",
            "linked_hazards": ["H2"],
            "category": "Incorrect timing",
        },
    ],
    CollectionKind.CONTROLLER_CONSTRAINTS: [
        {
            "id": 1,
            "code": "CC-01",
            "linked_ucas": ["UCA-01"],
            "constraint": (
                "The controller shall verify current glucose value < 80 mg/dL before commanding "
                "an increase in basal rate."
            ),
            "enforcement_mechanism": "Runtime guard inside dosing loop",
            "status": "Approved",
        },
        {
            "id": 2,
            "code": "CC-02",
            "linked_ucas": ["UCA-02"],
            "constraint": "Configuration updates shall require dual caregiver approval before activation.",
            "enforcement_mechanism": "Workflow enforced inside caregiver portal",
            "status": "Pending Review",
        },
        {
            "id": 3,
            "code": "CC-03",
            "linked_ucas": ["UCA-03"],
            "constraint": "Firmware deployment shall be deferred if the device reports an active infusion session.",
            "enforcement_mechanism": "Cloud deployment pipeline gate",
            "status": "Draft",
        },
    ],
    CollectionKind.LOSS_SCENARIOS: [
        {
            "id": 31,
            "code": "LS-31",
            "uca": "UCA-01: Release insulin while glucose is already low",
            "hazard": "H1: Hypoglycemia from over-infusion",
            "linked_ucas": ["UCA-01"],
            "linked_hazards": ["H1"],
            "outcome": "Stale CGM value is treated as current and the bolus is released.",
            "severity": "catastrophic",
            "mitigations": ["Reading freshness check", "Bolus confirmation prompt"],
            "status": "open",
        },
        {
            "id": 32,
            "code": "LS-32",
            "uca": "UCA-02: Glucose reading not provided",
            "hazard": "H2: Hyperglycemia from missed delivery",
            "linked_ucas": ["UCA-02"],
            "linked_hazards": ["H2"],
            "outcome": "Sensor warm-up gap hides rising glucose for more than two hours.",
            "severity": "major",
            "mitigations": ["Fingerstick reminder", "Alert escalation ladder"],
            "status": "mitigated",
        },
        {
            "id": 33,
            "code": "LS-33",
            "uca": "UCA-03: Bolus delivered late",
            "hazard": "H2: Hyperglycemia from missed delivery",
            "linked_ucas": ["UCA-03"],
            "linked_hazards": ["H2"],
            "outcome": "Partial occlusion delays delivery beyond the meal window.",
            "severity": "moderate",
            "mitigations": ["Occlusion pressure threshold review"],
            "status": "accepted",
        },
    ],
    CollectionKind.SAFETY_REQUIREMENTS: [
        {
            "id": 501,
            "code": "SR-501",
            "title": "Reject boluses computed from CGM readings older than five minutes",
            "linked_scenarios": ["LS-31"],
            "category": "Control Logic",
            "owner": "Dana Ortiz",
            "due_date": "2025-01-15",
            "status": "in-review",
        },
        {
            "id": 502,
            "code": "SR-502",
            "title": "Add progressive caregiver alert ladder for missing glucose data",
            "linked_scenarios": ["LS-32"],
            "category": "Human Factors",
            "owner": "Milan Petrov",
            "due_date": "2024-12-12",
            "status": "draft",
        },
        {
            "id": 503,
            "code": "SR-503",
            "title": "Tighten occlusion detection threshold during bolus delivery",
            "linked_scenarios": ["LS-33"],
            "category": "Procedural",
            "owner": "Keira Osei",
            "due_date": "2025-02-05",
            "status": "implemented",
        },
    ],
    CollectionKind.MODEL_CHANGES: [
        {
            "id": 1,
            "code": "MC-01",
            "area": "Goal refinement",
            "change": 'Split "Maintain safe dosing" into basal and bolus sub-goals.',
            "driver": "UCA-01 mitigation",
            "linked_drivers": ["UCA-01"],
            "impact": "Clarifies feedback loops for glucose reading latency analysis.",
            "status": "in-progress",
            "evidence": ["Updated goal diagram", "Meeting notes 2024-10-12"],
        },
        {
            "id": 2,
            "code": "MC-02",
            "area": "Actor responsibilities",
            "change": "Add clinic supervisor actor to reflect remote regimen override authority.",
            "driver": "Scenario LS-32",
            "linked_drivers": ["LS-32"],
            "impact": "Ensures remote override interlocks are explicitly modelled.",
            "status": "planned",
            "evidence": ["Action from review board"],
        },
        {
            "id": 3,
            "code": "MC-03",
            "area": "Resource links",
            "change": "Model the reading freshness channel between CGM and controller.",
            "driver": "Requirement SR-501",
            "linked_drivers": ["SR-501"],
            "impact": "Supports traceability to dosing logic constraints.",
            "status": "deployed",
            "evidence": ["Git commit #f92a4c", "Simulation run 2219"],
        },
    ],
    CollectionKind.VALIDATION_TASKS: [
        {
            "id": 21,
            "name": "Review goal hierarchy with safety board",
            "owner": "Priya Banerjee",
            "due_date": "2024-12-05",
            "channel": "Safety board",
            "status": "doing",
        },
        {
            "id": 22,
            "name": "Update change log in safety case",
            "owner": "Miguel Santos",
            "due_date": "2024-11-28",
            "channel": "Safety case",
            "status": "todo",
        },
        {
            "id": 23,
            "name": "Run regression of dosing logic scenario set",
            "owner": "Dana Ortiz",
            "due_date": "2024-12-18",
            "channel": "V&V",
            "status": "todo",
        },
    ],
    CollectionKind.INTEGRATION_NOTES: [
        {
            "id": 81,
            "summary": "System engineers aligned on new clinic supervisor actor responsibilities.",
            "created_on": "2024-11-01",
            "author": "Keira Osei",
            "action_items": ["Draft revised SOP for remote overrides", "Sync with training lead on new role"],
        },
        {
            "id": 82,
            "summary": "Reading freshness change validated against overnight glucose traces.",
            "created_on": "2024-10-22",
            "author": "Dana Ortiz",
            "action_items": ["Upload trace captures", "Schedule dry-run with clinical team"],
        },
    ],
}


def seed_records(kind: CollectionKind) -> list[dict[str, Any]]:
    return [dict(item) for item in _SEEDS.get(kind, [])]
