# API routers, one module per resource:
#   users          -- accounts, roles, API tokens
#   startups       -- startups and who may see or edit them
#   milestones     -- milestones nested under a startup
#   tasks          -- tasks nested under a startup
#   startup_calls  -- calls, applications, approval
#   reviews        -- reviewer assignments and submitted reviews
#   budgets        -- budgets, categories, expenses, reports
#   sponsorships   -- sponsorship opportunities and sponsor applications
#   events         -- program calendar
#   notifications  -- per-user inbox
#   dashboard      -- role-specific counters
