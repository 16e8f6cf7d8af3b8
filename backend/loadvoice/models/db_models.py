# Supabase schema SQL for reference
# Run SCHEMA_SQL in the Supabase SQL editor

TABLES = [
    "calls",
    "transcripts",
    "transcript_utterances",
    "call_insights",
    "call_fields",
    "loads",
    "load_activities",
]

SCHEMA_SQL = """
CREATE TABLE calls (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  customer_name text,
  sales_rep text,
  call_date date,
  duration int,
  sentiment_type text,
  sentiment_score int,
  file_name text,
  file_url text,
  transcription_id text,
  status text CHECK (status IN ('uploading','uploaded','processing','transcribing','extracting','completed','failed')) DEFAULT 'uploading',
  processing_progress int,
  processing_message text,
  error_message text,
  created_at timestamptz DEFAULT now(),
  processed_at timestamptz,
  deleted_at timestamptz
);

CREATE TABLE transcripts (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  call_id uuid REFERENCES calls(id) ON DELETE CASCADE,
  full_text text,
  confidence_score float,
  speakers_count int,
  audio_duration float,
  created_at timestamptz DEFAULT now()
);

CREATE TABLE transcript_utterances (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  transcript_id uuid REFERENCES transcripts(id) ON DELETE CASCADE,
  speaker text NOT NULL,
  text text NOT NULL,
  start_time float NOT NULL,
  end_time float NOT NULL,
  confidence float,
  sentiment text
);

CREATE TABLE call_insights (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  call_id uuid REFERENCES calls(id) ON DELETE CASCADE,
  insight_type text CHECK (insight_type IN ('pain_point','action_item','competitor')),
  insight_text text NOT NULL,
  confidence_score float,
  created_at timestamptz DEFAULT now()
);

CREATE TABLE call_fields (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  call_id uuid REFERENCES calls(id) ON DELETE CASCADE,
  field_name text NOT NULL,
  field_value text,
  confidence_score float,
  created_at timestamptz DEFAULT now()
);

CREATE TABLE loads (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  load_number text UNIQUE NOT NULL,
  status text CHECK (status IN ('quoted','needs_carrier','dispatched','in_transit','delivered','completed','cancelled')) DEFAULT 'quoted',
  pickup_city text,
  pickup_state text,
  pickup_date date,
  delivery_city text,
  delivery_state text,
  delivery_date date,
  commodity text,
  equipment_type text,
  weight_pounds int,
  rate_to_shipper numeric(10,2),
  rate_to_carrier numeric(10,2),
  carrier_id uuid,
  shipper_id uuid,
  call_id uuid REFERENCES calls(id) ON DELETE SET NULL,
  metadata jsonb DEFAULT '{}'::jsonb,
  created_at timestamptz DEFAULT now(),
  updated_at timestamptz DEFAULT now(),
  deleted_at timestamptz,
  -- A dispatched or moving load always has a carrier
  CONSTRAINT dispatched_has_carrier CHECK (status NOT IN ('dispatched','in_transit') OR carrier_id IS NOT NULL)
);

CREATE TABLE load_activities (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  load_id uuid REFERENCES loads(id) ON DELETE CASCADE,
  activity_type text NOT NULL,
  description text,
  metadata jsonb DEFAULT '{}'::jsonb,
  created_at timestamptz DEFAULT now()
);

CREATE INDEX loads_status_idx ON loads(status);
CREATE INDEX loads_pickup_date_idx ON loads(pickup_date);
CREATE INDEX calls_status_idx ON calls(status);
"""
