SCRIBE_SOAP_PROMPT = """You are a medical scribe. Based on the following telehealth visit data, generate professional medical notes in SOAP format.

## Audio Transcript
{transcript}

## Visual Observations (patient body language)
{observations}

Generate a complete SOAP note with the following sections:
1. Subjective: what the patient said about their symptoms, concerns and medical history.
2. Objective: the visual observations noted during the call.
3. Assessment: a clinical assessment connecting verbal complaints with observed body language.
4. Plan: next steps, follow-up recommendations and any tests or referrals that may be needed.

Format the response in clean Markdown with proper headers. Be professional, concise and clinically accurate."""

SCRIBE_TEMPLATE = """# Medical Visit Notes

## Subjective
{subjective}

## Objective
{objective}

## Assessment
Based on the available information, further evaluation may be needed.

## Plan
1. Follow up with patient regarding symptoms
2. Consider additional diagnostic tests if symptoms persist
3. Schedule follow-up appointment in 1-2 weeks

---
*Note: Template notes. Configure a scribe model for generated notes.*"""
