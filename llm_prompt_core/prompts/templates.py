"""
Prompt templates for the courtroom simulation.

Templates are plain ``str.format`` strings. JSON response schemas live in
their own constants and are inserted through the ``{schema}`` field, so the
templates themselves never need escaped braces.
"""

# Shared preamble: who the model is and what case it is working on
preamble_template = """
{instruction_prefix}
This is the case file.
{case_context}\n
"""

# Instruction prefixes, one per role the model plays
case_instruction_prefix = """
You are an expert in civil-law procedural practice designing training cases for law students.
"""

court_instruction_prefix = """
You are a trial simulator acting as both the presiding judge and opposing counsel in a fictional case.
"""

evaluation_instruction_prefix = """
You are a professor of procedural law at a prestigious university. A student has just completed a simulated trial.
"""

# Case generation
case_generation_template = """
{instruction_prefix}
Generate a fictional but realistic legal case for a law student in the area of '{area}'.
The difficulty of the case must be: '{difficulty}'.
The procedure is {procedure_description}.
Include a title, a summary, the parties, the available evidence and the player's objective.
Also write the client interview: the client's own account, in first person, of what happened and what they want.
{filing_goals_instruction}
Crucially, also produce a glossary of 5 to 7 legal terms that are essential to understand this case, with clear and concise definitions, citing the legal source where possible.

Respond ONLY with a valid JSON object matching this schema:
{schema}
"""

written_filing_goals_instruction = (
    "Describe what the opening filing must contain in 'filing_goals' (numbered requirements)."
)

oral_filing_goals_instruction = (
    "Describe what the opening statement must achieve in 'filing_goals' (numbered requirements)."
)

procedure_descriptions = {
    "written": "written (as in civil or family law), conducted through filings",
    "oral": "oral (as in criminal or labour law), conducted through spoken hearings",
}

# Pre-trial admissibility review of a written filing
admissibility_template = """
{preamble}
The student has drafted the following opening filing:
\"\"\"
{draft}
\"\"\"

Review it as the court's clerk would before admitting it for processing.
1. Decide whether the filing is admissible: it must identify the parties, state the facts, give a legal basis and make a concrete request.
2. Explain your decision in 'analysis'. If it is not admissible, say exactly what must be fixed.
3. If it is admissible, describe in 'next_narrative' what the court does next (e.g. "The claim is admitted and the defendant is served with ten days to answer.").

Respond ONLY with a valid JSON object matching this schema:
{schema}
"""

# In-trial turn
turn_template = """
{preamble}
The trial follows the {procedure} procedure.
Here is the record of the trial so far:
{history}

{latest_action}

1. **Assess the action:** Give short, direct feedback on the student's last action in 'feedback', saying whether it was a good strategy and citing a legal provision where relevant.
2. **Advance the narrative:** Describe the next event in the trial realistically and dramatically. Set 'speaker' to "JUDGE" when the bench speaks and "OPPONENT" when opposing counsel does.
3. **Define the next step:**
{next_step_instruction}
4. **Offer a settlement if it is realistic:** opposing counsel may propose a settlement, mediation, arbitration or agreement in 'adr_proposal'. Leave it null otherwise. Never propose one while another is on the table.
5. **Conclude if appropriate:** set 'concluded' to true only if the trial ends with this turn, in which case the narrative must contain the final ruling.

Respond ONLY with a valid JSON object matching this schema:
{schema}
"""

written_latest_action_template = 'The student has submitted the following filing: "{latest_input}"'
oral_latest_action_template = 'The student has decided: "{latest_input}"'
oral_silent_action = "The student's time ran out and they said nothing."

written_next_step_instruction = (
    "    The narrative must say what is expected next (e.g. \"The other side has been notified and "
    "has a deadline to answer.\"). 'suggested_options' must be an empty list."
)
oral_next_step_instruction = (
    "    Give exactly 3 new clear and concise options for the student in 'suggested_options'."
)

# Negotiation records, rendered into the latest action line
adr_rejection_template = 'The student rejected the {kind} proposal: "{terms}"'
adr_counter_template = 'The student rejected the {kind} proposal and countered with: "{terms}"'

# Final evaluation
evaluation_template = """
{instruction_prefix}
The case objective was: "{objective}".
Here is the full record of the student's decisions and the court's responses:
{history}

{resolution_instruction}
{closing_instruction}

Evaluate the student's performance. Give a score from 0 to 100, an analysis of their strengths and weaknesses, and concrete advice to improve, citing relevant code provisions where appropriate.

Respond ONLY with a valid JSON object matching this schema:
{schema}
"""

resolution_instructions = {
    "ruling": "The case ended with a final ruling. Judge the litigation: how well the student's arguments served the objective.",
    "adr_acceptance": "The case ended with the student accepting a negotiated settlement. Judge the negotiation: whether the agreed terms serve the client's objective better than litigating on.",
    "early_conclusion": "The student ended the trial before a ruling. Judge what was achieved up to that point.",
}

closing_instruction_template = 'The record that closed the case: "{closing}"'

# Template for formatting individual record lines
record_template = "[{speaker}]: {text}\n"

# JSON schemas
case_schema = """
{
  "title": "string",
  "summary": "string",
  "parties": [{"name": "string", "role": "string, e.g. Plaintiff (your client), Defendant, Key witness"}],
  "evidence": ["string"],
  "objective": "string, the player's main goal",
  "judge": {"name": "string", "disposition": "string"},
  "opposing_argument": "string, the other side's position",
  "client_interview": "string",
  "filing_goals": "string",
  "key_facts": ["string"],
  "glossary": [{"term": "string", "definition": "string", "source": "string or null"}]
}
"""

admissibility_schema = """
{
  "admissible": "boolean",
  "analysis": "string",
  "next_narrative": "string, empty when not admissible"
}
"""

turn_schema = """
{
  "narrative": "string",
  "speaker": "JUDGE or OPPONENT",
  "suggested_options": ["string"],
  "concluded": "boolean",
  "feedback": {"analysis": "string", "citation": "string or null"},
  "adr_proposal": {"kind": "settlement | mediation | arbitration | agreement", "terms": "string"} or null
}
"""

evaluation_schema = """
{
  "score": "integer from 0 to 100",
  "analysis": "string",
  "strengths": "string",
  "weaknesses": "string",
  "advice": "string"
}
"""
