from .errors import ValidationFailed


def calculate_weight_history_with_gain(weight_records):
    """
    Takes a pig's WeightRecord rows and returns its weight history in date
    order, enriched with average daily gain calculations for each entry.
    """
    # Several weighings on one day collapse into the last one recorded.
    by_date = {}
    for record in sorted(weight_records, key=lambda w: (w.recorded_date, w.created_at)):
        by_date[record.recorded_date] = record.weight_kg
    sorted_events = sorted(by_date.items())

    if not sorted_events:
        return []

    # The first event is our baseline.
    first_date, first_weight = sorted_events[0]
    enriched_history = []

    for i, (current_date, current_weight) in enumerate(sorted_events):
        # --- Daily gain accumulated since the first weighing ---
        days_since_start = (current_date - first_date).days
        gain_since_start = current_weight - first_weight
        gain_accumulated = (gain_since_start / days_since_start) if days_since_start > 0 else 0

        # --- Daily gain since the previous weighing ---
        gain_period = 0
        weight_change = None
        if i > 0: # Can only calculate if there's a previous event
            previous_date, previous_weight = sorted_events[i - 1]
            days_between = (current_date - previous_date).days
            weight_change = round(current_weight - previous_weight, 2)
            gain_period = (weight_change / days_between) if days_between > 0 else 0

        enriched_history.append({
            'recorded_date': current_date.isoformat(),
            'weight_kg': round(current_weight, 2),
            'weight_change_kg': weight_change,
            'daily_gain_accumulated_kg': round(gain_accumulated, 3),
            'daily_gain_period_kg': round(gain_period, 3),
        })

    return enriched_history


def summarize_weights(weight_records):
    """Average weight and record count for a pig's weight history."""
    if not weight_records:
        return {'average_weight_kg': 0.0, 'total_records': 0}
    total = sum(record.weight_kg for record in weight_records)
    return {
        'average_weight_kg': round(total / len(weight_records), 2),
        'total_records': len(weight_records),
    }


def parse_positive_int(raw, name, default, maximum=None):
    """Reads an optional positive integer query parameter."""
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationFailed(f"The '{name}' parameter must be an integer.", field=name)
    if value < 1:
        raise ValidationFailed(f"The '{name}' parameter must be at least 1.", field=name)
    if maximum is not None:
        value = min(value, maximum)
    return value
