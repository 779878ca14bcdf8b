"""
Guided tutorial cases.

Hand-written cases that walk a new player through one full trial. They are
loaded without calling the content generator and never count towards
difficulty progression.
"""

from __future__ import annotations

from case_model import (
    Case,
    DifficultyTier,
    GlossaryTerm,
    GuidedStep,
    JudgeProfile,
    Party,
    ProcedureKind,
)

TUTORIAL_UNFAIR_DISMISSAL = Case(
    id="tutorial-unfair-dismissal",
    is_guided=True,
    title="Guided Case: Unfair Dismissal",
    summary=(
        'Ana Pérez was dismissed from her job as a graphic designer at "Publicidad Rápida" '
        'after one year. The company cites "business needs", but Ana suspects it was because '
        "she kept asking to be paid the overtime she was owed. She is seeking her severance "
        "payments plus the statutory surcharge."
    ),
    area="Labour Law",
    procedure=ProcedureKind.ORAL,
    difficulty=DifficultyTier.INTRODUCTORY,
    objective=(
        "Have the dismissal declared unjustified and obtain the corresponding severance "
        "payments with the 30% statutory surcharge."
    ),
    parties=(
        Party(name="Ana Pérez", role="Plaintiff (your client)"),
        Party(name="Publicidad Rápida Ltda.", role="Defendant"),
    ),
    evidence=(
        "Ana Pérez's employment contract.",
        'Dismissal letter citing "business needs".',
        "Emails from Ana requesting payment of overtime.",
    ),
    judge=JudgeProfile(name="Judge Soto", disposition="Patient with newcomers, strict on procedure"),
    opposing_argument="The position was eliminated as part of a restructuring forced by falling revenue.",
    client_interview=(
        "Counsellor, thank you for seeing me. My name is Ana Pérez. I worked for a year as a "
        'designer at "Publicidad Rápida" and yesterday they let me go. They handed me a letter '
        'that says "business needs", but I don\'t understand it, they were even asking me to '
        "stay late! Just last month I sent several emails asking them to pay me for that "
        "overtime and they never did. I feel they wanted to get rid of me so they wouldn't have "
        "to pay. I only want what is fair: my final settlement and an acknowledgement that "
        "this was wrong."
    ),
    filing_goals=(
        "The claim must: 1. Identify the parties. 2. Set out the facts of the dismissal. "
        '3. Argue why the "business needs" ground does not apply. 4. Ask for the dismissal '
        "to be declared unjustified. 5. Ask for severance for years of service and pay in lieu "
        "of notice, with the 30% surcharge under Art. 168 of the Labour Code."
    ),
    key_facts=(
        "One year of service as a graphic designer.",
        'Dismissal letter invokes "business needs".',
        "Overtime payment requested by email the month before the dismissal.",
    ),
    glossary=(
        GlossaryTerm(
            term="Unjustified Dismissal",
            definition=(
                "A dismissal that fits none of the legal grounds, or where the ground invoked "
                "by the employer is false or does not apply."
            ),
        ),
        GlossaryTerm(
            term="Business Needs",
            definition=(
                "Dismissal ground tied to changes in market or economic conditions that make "
                "it necessary to let one or more workers go."
            ),
            source="Art. 161, Labour Code",
        ),
        GlossaryTerm(
            term="Statutory Surcharge",
            definition=(
                "Percentage increase on severance for years of service that the judge may order "
                "when the dismissal is found unjustified, improper or undue (e.g. 30%)."
            ),
            source="Art. 168, Labour Code",
        ),
    ),
    guided_steps=(
        GuidedStep(
            trigger="pre-trial-drafting",
            title="Your First Labour Claim",
            text=(
                "Welcome to your first case! Your goal is to draft the claim. Structure it like this:\n"
                "1. **Identify the parties:** Name your client (plaintiff) and the company (defendant).\n"
                "2. **Describe the facts:** Explain the employment relationship and how the dismissal happened.\n"
                '3. **Ground it in law:** Argue why "business needs" does not apply here.\n'
                "4. **Make your request (petitum):** Ask the judge to declare the dismissal unjustified "
                "and order the severance payments with the corresponding surcharge."
            ),
        ),
        GuidedStep(
            trigger="trial-turn-1",
            title="Preliminary Hearing: Ratification and Conciliation",
            text=(
                "You have reached the first hearing. The judge will first ask you to **ratify the "
                "claim**. Then the parties will be called to **conciliation** (reaching an agreement).\n\n"
                "**Your task:** Present a short opening argument. Ratify the claim on behalf of your "
                "client and stay open to conciliation, but make your firm position on the unfairness "
                "of the dismissal clear."
            ),
        ),
    ),
)

GUIDED_CASES: dict[str, Case] = {
    TUTORIAL_UNFAIR_DISMISSAL.id: TUTORIAL_UNFAIR_DISMISSAL,
}


def get_guided_case(case_id: str | None = None) -> Case:
    """Return a tutorial case by id; the unfair-dismissal case by default."""
    if case_id is None:
        return TUTORIAL_UNFAIR_DISMISSAL
    try:
        return GUIDED_CASES[case_id]
    except KeyError:
        raise KeyError(f"Unknown guided case: {case_id}") from None
