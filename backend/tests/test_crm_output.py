"""Tests for the CRM output formatter."""

from datetime import date

import pytest

from loadvoice.services.crm_output import CRM_FORMATS, CSV_HEADER, find_field, generate_crm_output


TODAY = date(2026, 10, 18)


@pytest.fixture
def call():
    return {
        "id": "call-1",
        "customer_name": "Summit Logistics",
        "sales_rep": "Dana",
        "call_date": "2026-10-05",
        "duration": 754,
        "sentiment_type": "positive",
    }


@pytest.fixture
def fields():
    return [
        {"field_name": "Budget", "field_value": "$2,400"},
        {"field_name": "Deal Title", "field_value": "Dallas to Atlanta lane"},
        {"field_name": "deal stage", "field_value": "negotiation"},
        {"field_name": "Timeline", "field_value": ""},
    ]


@pytest.fixture
def insights():
    return [
        {"insight_type": "pain_point", "insight_text": "Carrier misses pickups"},
        {"insight_type": "pain_point", "insight_text": "Rates too high"},
        {"insight_type": "action_item", "insight_text": "Send rate confirmation"},
        {"insight_type": "competitor", "insight_text": "Acme Freight"},
    ]


class TestFindField:
    def test_case_insensitive(self, fields):
        assert find_field(fields, "DEAL STAGE") == "negotiation"

    def test_empty_value_is_absent(self, fields):
        assert find_field(fields, "Timeline") is None

    def test_missing(self, fields):
        assert find_field(fields, "Decision Maker") is None


class TestDeterminism:
    @pytest.mark.parametrize("fmt", CRM_FORMATS)
    def test_same_input_same_output(self, fmt, call, fields, insights):
        first = generate_crm_output(fmt, call, fields, insights, today=TODAY)
        second = generate_crm_output(fmt, call, fields, insights, today=TODAY)
        assert first == second

    def test_unknown_format(self, call):
        with pytest.raises(ValueError):
            generate_crm_output("pipedrive", call)


class TestPlain:
    def test_header_block(self, call, fields, insights):
        output = generate_crm_output("plain", call, fields, insights, today=TODAY)
        assert "Customer: Summit Logistics" in output
        assert "Date: 10/5/2026" in output
        assert "Duration: 12 minutes" in output
        assert "Timeline: N/A" in output
        assert "- Carrier misses pickups\n- Rates too high" in output

    def test_fallback_lines(self):
        output = generate_crm_output("plain", {"id": "c"}, [], [], today=TODAY)
        assert output.count("- None identified") == 2
        assert "- None mentioned" in output
        assert "Date: Unknown" in output
        assert "Duration: 0 minutes" in output


class TestHubspot:
    def test_fields(self, call, fields, insights):
        output = generate_crm_output("hubspot", call, fields, insights, today=TODAY)
        assert 'dealname: "Summit Logistics - Dallas to Atlanta lane"' in output
        assert 'amount: "$2,400"' in output
        assert 'dealstage: "negotiation"' in output
        assert 'next_steps: "Send rate confirmation"' in output
        assert 'pain_points: "Carrier misses pickups; Rates too high"' in output
        assert 'call_duration: "754"' in output

    def test_defaults(self):
        output = generate_crm_output("hubspot", {"id": "c"}, [], [], today=TODAY)
        assert 'amount: "N/A"' in output
        assert 'dealstage: "qualifiedtobuy"' in output
        assert 'closedate: "2027-01-16"' in output
        assert 'hubspot_owner_id: "unassigned"' in output
        assert 'next_steps: "Follow up required"' in output
        assert 'sentiment: "neutral"' in output

    def test_deal_value_fallback(self):
        fields = [{"field_name": "Deal Value", "field_value": "5000"}]
        assert 'amount: "5000"' in generate_crm_output("hubspot", {}, fields, [], today=TODAY)


class TestSalesforce:
    def test_amount_digits_only(self, call, fields, insights):
        output = generate_crm_output("salesforce", call, fields, insights, today=TODAY)
        assert "Amount: 2400\n" in output
        assert 'Competitors__c: "Acme Freight"' in output

    def test_defaults(self):
        output = generate_crm_output("salesforce", {}, [], [], today=TODAY)
        assert "Amount: 0\n" in output
        assert 'StageName: "Qualification"' in output
        assert "CloseDate: 2027-01-16" in output
        assert 'Call_Sentiment__c: "Neutral"' in output


class TestCsv:
    def test_exactly_two_lines(self, call, fields, insights):
        output = generate_crm_output("csv", call, fields, insights, today=TODAY)
        lines = output.split("\n")
        assert len(lines) == 2
        assert lines[0] == CSV_HEADER
        assert lines[1].startswith('"Summit Logistics","Dana","10/5/2026","12","positive","$2,400"')

    def test_newlines_flattened(self, call):
        insights = [{"insight_type": "pain_point", "insight_text": "line one\nline two"}]
        output = generate_crm_output("csv", call, [], insights, today=TODAY)
        assert len(output.split("\n")) == 2

    def test_empty_call(self):
        output = generate_crm_output("csv", {}, [], [], today=TODAY)
        assert output.split("\n")[1] == '"Unknown","Unknown","Unknown","0","neutral","N/A","N/A","","",""'
