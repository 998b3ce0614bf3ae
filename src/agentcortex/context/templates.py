"""Prompt templates; ``{{key}}`` placeholders are filled from a ``State``."""

MESSAGE_HANDLER_TEMPLATE = """{{actionExamples}}

# Task: Generate dialog and actions for the character {{agentName}}.
About {{agentName}}:
{{bio}}
{{lore}}
{{topics}}

{{providers}}

{{characterMessageExamples}}

{{messageDirections}}

{{goals}}

{{recentFacts}}

{{relevantFacts}}

{{attachments}}

{{actors}}

{{actions}}

{{recentMessages}}

# Instructions: Write the next message for {{agentName}}. Include an action, if appropriate. {{actionNames}}
Response format should be formatted in a JSON block like this:
```json
{ "user": "{{agentName}}", "text": "string", "action": "string" }
```"""

SHOULD_RESPOND_TEMPLATE = """# Task: Decide whether {{agentName}} should respond to the last message.
About {{agentName}}:
{{bio}}

{{recentMessages}}

# Instructions: Respond with [RESPOND] if {{agentName}} is addressed or the conversation is relevant to them, [IGNORE] if the message is not directed at them, or [STOP] if they were asked to stop or the conversation is over.
Response options are [RESPOND], [IGNORE] and [STOP]."""

EVALUATION_TEMPLATE = """TASK: Based on the conversation and conditions, determine which evaluation functions are appropriate to call.
Examples:
{{evaluatorExamples}}

INSTRUCTIONS: You are helping me to decide which appropriate functions to call based on the conversation between {{senderName}} and {{agentName}}.

{{recentMessages}}

Evaluator Functions:
{{evaluators}}

TASK: Based on the most recent conversation, determine which evaluators functions are appropriate to call to call.
Include the name of evaluators that are relevant and should be called in the array
available evaluator names: {{evaluatorNames}}
Response format should be a JSON array of evaluator names in a code block:
```json
["EVALUATOR_NAME"]
```"""

FACT_EXTRACTION_TEMPLATE = """TASK: Extract claims from the conversation as an array of claims in JSON format.

# START OF EXAMPLES
These are examples of the expected output of this task:
{{evaluatorExamples}}
# END OF EXAMPLES

# INSTRUCTIONS

Extract any claims from the conversation that are not already present in the list of known facts above:
- Try not to include already-known facts. If you think a fact is already known, but you're not sure, respond with already_known: true.
- If the fact is already in the user's description, set in_bio to true
- If the fact is already known to the user, set already_known to true
- Set the claim type to 'status', 'fact' or 'opinion'
- For true facts about the world or the character that do not change, set the claim type to 'fact'
- For facts that are true but change over time, set the claim type to 'status'
- For non-facts, set the type to 'opinion'

Known facts:
{{recentFacts}}

Recent Messages:
{{recentMessages}}

Response should be a JSON array inside a JSON markdown block. Correct response format:
```json
[
  {"claim": string, "type": enum<fact|opinion|status>, "in_bio": boolean, "already_known": boolean},
  ...
]
```"""

GOAL_UPDATE_TEMPLATE = """TASK: Update Goal
Analyze the conversation and update the status of the goals based on the new information provided.

# INSTRUCTIONS

- Review the conversation and identify any progress towards the objectives of the current goals.
- Update the objectives if they have been completed or if there is new information about them.
- Update the status of the goal to 'DONE' if all objectives are completed.
- If no progress is made, do not change the status of the goal.

# START OF ACTUAL TASK INFORMATION

{{goals}}
{{recentMessages}}

TASK: Analyze the conversation and update the status of the goals based on the new information provided. Respond with a JSON array of goals to update.
- Each item must include the goal id, as well as the fields in the goal to update.
- For updating objectives, include the entire objectives array including unchanged fields.
- Only include goals which need to be updated.
- Goal status options are 'IN_PROGRESS', 'DONE' and 'FAILED'. If the goal is active it should always be 'IN_PROGRESS'.
- If the goal has been successfully completed, set status to DONE. If the goal cannot be completed, set status to FAILED.

Response format should be:
```json
[
  {
    "id": <goal uuid>,
    "status": "IN_PROGRESS" | "DONE" | "FAILED",
    "objectives": [
      { "description": "Objective description", "completed": true | false },
      ...
    ]
  }
]
```"""
