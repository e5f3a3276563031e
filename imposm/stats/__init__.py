"""Rate counters and progress reporting for the import process."""